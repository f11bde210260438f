"""CLI utilities for scheduling maintenance."""

# purpose: give operators an explicit, non-scheduled way to retire lapsed availability
# status: active
# depends_on: backend.app.database, backend.app.services.availability

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import typer

from ..database import SessionLocal
from ..services import availability

app = typer.Typer(help="Mentor scheduling maintenance commands")

logger = logging.getLogger(__name__)


def expire_slots(dry_run: bool = False, now: datetime | None = None) -> dict[str, int | bool]:
    """Deactivate recurring slots past their ``valid_until``. Nothing is deleted."""

    session = SessionLocal()
    try:
        expired = availability.expire_stale_slots(session, now=now)
        if dry_run:
            session.rollback()
        else:
            session.commit()
        return {"expired": expired, "dry_run": dry_run}
    finally:
        session.close()


@app.command("expire-slots")
def expire_slots_command(
    dry_run: bool = typer.Option(False, help="Report how many slots would be deactivated"),
) -> None:
    """CLI wrapper for :func:`expire_slots`."""

    logging.basicConfig(level=logging.INFO)
    summary = expire_slots(dry_run=dry_run, now=datetime.now(timezone.utc))
    typer.echo(json.dumps(summary))


if __name__ == "__main__":
    app()
