from datetime import date, datetime, time, timedelta
from types import SimpleNamespace
import uuid

import pytest

from app.services import occurrences
from app.services.errors import ValidationError


def recurring(day_of_week, start=time(14, 0), end=time(15, 0), valid_from=None, valid_until=None):
    return SimpleNamespace(
        id=uuid.uuid4(),
        is_recurring=True,
        day_of_week=day_of_week,
        specific_date=None,
        start_time=start,
        end_time=end,
        timezone="UTC",
        valid_from=valid_from,
        valid_until=valid_until,
    )


def one_time(day, start=time(10, 0), end=time(11, 0)):
    return SimpleNamespace(
        id=uuid.uuid4(),
        is_recurring=False,
        day_of_week=None,
        specific_date=day,
        start_time=start,
        end_time=end,
        timezone="UTC",
        valid_from=None,
        valid_until=None,
    )


# 2026-10-19 is a Monday
MONDAY = date(2026, 10, 19)


def test_weekday_index_is_sunday_based():
    assert occurrences.weekday_index(MONDAY) == 1
    assert occurrences.weekday_index(MONDAY - timedelta(days=1)) == 0
    assert occurrences.weekday_index(MONDAY + timedelta(days=5)) == 6


@pytest.mark.parametrize("day_of_week", range(7))
@pytest.mark.parametrize("offset", range(7))
def test_next_occurrence_matches_weekday_and_never_precedes_query(day_of_week, offset):
    as_of = datetime.combine(MONDAY + timedelta(days=offset), time(9, 0))
    result = occurrences.next_occurrence(recurring(day_of_week), as_of)
    assert result is not None
    assert occurrences.weekday_index(result) == day_of_week
    assert as_of.date() <= result < as_of.date() + timedelta(days=7)


def test_monday_slot_queried_mid_window_rolls_to_next_week():
    slot = recurring(1, start=time(14, 0), end=time(15, 0))
    as_of = datetime.combine(MONDAY, time(14, 30))
    assert occurrences.next_occurrence(slot, as_of) == MONDAY + timedelta(days=7)
    listed = occurrences.occurrences_between(slot, MONDAY, MONDAY + timedelta(days=7), as_of=as_of)
    assert [occ.date for occ in listed] == [MONDAY + timedelta(days=7)]


def test_same_day_before_start_keeps_today():
    slot = recurring(1, start=time(14, 0))
    as_of = datetime.combine(MONDAY, time(13, 59))
    assert occurrences.next_occurrence(slot, as_of) == MONDAY


def test_exact_start_time_counts_as_started():
    slot = recurring(1, start=time(14, 0))
    as_of = datetime.combine(MONDAY, time(14, 0))
    assert occurrences.next_occurrence(slot, as_of) == MONDAY + timedelta(days=7)


def test_validity_bounds_suppress_out_of_range_occurrence():
    slot = recurring(3, valid_until=MONDAY + timedelta(days=1))
    assert occurrences.next_occurrence(slot, datetime.combine(MONDAY, time(8, 0))) is None

    later = recurring(3, valid_from=MONDAY + timedelta(days=9))
    assert occurrences.next_occurrence(later, datetime.combine(MONDAY, time(8, 0))) is None


def test_one_time_slot_expires_once_started():
    slot = one_time(MONDAY, start=time(10, 0))
    assert occurrences.next_occurrence(slot, datetime.combine(MONDAY, time(9, 0))) == MONDAY
    assert occurrences.next_occurrence(slot, datetime.combine(MONDAY, time(10, 1))) is None
    assert occurrences.is_expired(slot, datetime.combine(MONDAY, time(10, 1)))
    assert not occurrences.is_expired(slot, datetime.combine(MONDAY - timedelta(days=1), time(23, 0)))


def test_occurrences_between_enumerates_weekly_matches_inside_bounds():
    slot = recurring(
        2,
        valid_from=MONDAY + timedelta(days=8),
        valid_until=MONDAY + timedelta(days=22),
    )
    found = occurrences.occurrences_between(slot, MONDAY, MONDAY + timedelta(days=60))
    assert [occ.date for occ in found] == [
        MONDAY + timedelta(days=8),
        MONDAY + timedelta(days=15),
        MONDAY + timedelta(days=22),
    ]
    assert all(occ.start_time == time(14, 0) for occ in found)
    assert found[0].starts_at == datetime.combine(MONDAY + timedelta(days=8), time(14, 0))


def test_occurrences_between_empty_for_inverted_range():
    assert occurrences.occurrences_between(recurring(1), MONDAY, MONDAY - timedelta(days=1)) == []


def test_is_valid_on():
    slot = recurring(1, valid_until=MONDAY + timedelta(days=7))
    assert occurrences.is_valid_on(slot, MONDAY)
    assert not occurrences.is_valid_on(slot, MONDAY + timedelta(days=1))
    assert not occurrences.is_valid_on(slot, MONDAY + timedelta(days=14))
    assert occurrences.is_valid_on(one_time(MONDAY), MONDAY)


def test_local_now_converts_to_slot_timezone():
    utc_noon = datetime(2026, 1, 15, 12, 0)
    assert occurrences.local_now("America/New_York", utc_noon) == datetime(2026, 1, 15, 7, 0)
    with pytest.raises(ValidationError):
        occurrences.local_now("Mars/Olympus_Mons", utc_noon)
