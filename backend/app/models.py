import enum
import uuid
from dataclasses import dataclass
import sqlalchemy as sa
from sqlalchemy import (
    Column,
    String,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    JSON,
    Integer,
    Time,
    Text,
    Float,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_column(enum_cls: type[enum.Enum], **kwargs) -> Column:
    # stored as plain strings so the same schema works on sqlite and postgres
    return Column(
        sa.Enum(
            enum_cls,
            native_enum=False,
            validate_strings=True,
            length=40,
            values_callable=lambda members: [m.value for m in members],
        ),
        **kwargs,
    )


class UserRole(str, enum.Enum):
    MENTOR = "mentor"
    STARTUP = "startup"
    ADMIN = "admin"


class FeeType(str, enum.Enum):
    FREE = "Free"
    FEES = "Fees"
    EQUITY = "Equity"
    HYBRID = "Hybrid"


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class AssignmentStatus(str, enum.Enum):
    PENDING_PAYMENT = "pending_payment"
    PENDING_AGREEMENT = "pending_agreement"
    PENDING_PAYMENT_AND_AGREEMENT = "pending_payment_and_agreement"
    READY_FOR_ACTIVATION = "ready_for_activation"
    ACTIVE = "active"
    COMPLETED = "completed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class AgreementStatus(str, enum.Enum):
    PENDING_MENTOR_APPROVAL = "pending_mentor_approval"
    PENDING_MENTOR_SIGNATURE = "pending_mentor_signature"
    APPROVED = "approved"
    REJECTED = "rejected"


class SessionStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class User(Base):
    __tablename__ = "users"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    full_name = Column(String)
    role = _enum_column(UserRole, nullable=False, default=UserRole.STARTUP)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=_utcnow)

    mentor_profile = relationship(
        "MentorProfile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    startups = relationship("Startup", back_populates="owner")

    @property
    def display_name(self) -> str:
        if self.mentor_profile and self.mentor_profile.display_name:
            return self.mentor_profile.display_name
        return self.full_name or self.email


class MentorProfile(Base):
    __tablename__ = "mentor_profiles"
    # purpose: default engagement terms a mentor offers to startups
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    display_name = Column(String)
    fee_type = _enum_column(FeeType, nullable=False, default=FeeType.FREE)
    fee_currency = Column(String(3), nullable=False, default="USD")
    fee_amount = Column(Float)
    equity_percentage = Column(Float)
    timezone = Column(String, nullable=False, default="UTC")
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    user = relationship("User", back_populates="mentor_profile")


class Startup(Base):
    __tablename__ = "startups"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    name = Column(String, nullable=False)
    sector = Column(String)
    website = Column(String)
    created_at = Column(DateTime, default=_utcnow)

    owner = relationship("User", back_populates="startups")


class EngagementRequest(Base):
    __tablename__ = "engagement_requests"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    startup_id = Column(UUID(as_uuid=True), ForeignKey("startups.id"), nullable=False)
    mentor_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    requester_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    status = _enum_column(RequestStatus, nullable=False, default=RequestStatus.PENDING)
    fee_type = _enum_column(FeeType, nullable=False, default=FeeType.FREE)
    proposed_fee_amount = Column(Float)
    proposed_equity_amount = Column(Float)
    proposed_esop_percentage = Column(Float)
    fee_currency = Column(String(3), nullable=False, default="USD")
    message = Column(Text)
    requested_at = Column(DateTime, default=_utcnow, nullable=False)
    responded_at = Column(DateTime)

    startup = relationship("Startup")
    mentor = relationship("User", foreign_keys=[mentor_id])

    __table_args__ = (
        sa.Index("ix_engagement_requests_mentor_status", "mentor_id", "status"),
    )


@dataclass(frozen=True)
class LinkedStartup:
    """Engagement with a startup that has a platform record."""

    startup_id: uuid.UUID
    kind: str = "linked"


@dataclass(frozen=True)
class ManualStartup:
    """Engagement a mentor recorded for a startup that is not on the platform."""

    name: str
    email: str | None = None
    website: str | None = None
    sector: str | None = None
    kind: str = "manual"


class Assignment(Base):
    __tablename__ = "assignments"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    mentor_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    startup_id = Column(UUID(as_uuid=True), ForeignKey("startups.id"), nullable=True)
    request_id = Column(UUID(as_uuid=True), ForeignKey("engagement_requests.id"), nullable=True)
    status = _enum_column(AssignmentStatus, nullable=False)
    fee_type = _enum_column(FeeType, nullable=False, default=FeeType.FREE)
    fee_amount = Column(Float, nullable=False, default=0)
    fee_currency = Column(String(3), nullable=False, default="USD")
    esop_percentage = Column(Float, nullable=False, default=0)
    esop_value = Column(Float, nullable=False, default=0)
    payment_status = _enum_column(PaymentStatus, nullable=True)
    payment_reference = Column(String)
    agreement_status = _enum_column(AgreementStatus, nullable=True)
    agreement_url = Column(String)
    agreement_uploaded_at = Column(DateTime)
    mentor_signed_agreement_url = Column(String)
    mentor_signed_agreement_uploaded_at = Column(DateTime)
    # manual engagements carry the startup details inline
    manual_startup_name = Column(String)
    manual_startup_email = Column(String)
    manual_startup_website = Column(String)
    manual_startup_sector = Column(String)
    assigned_at = Column(DateTime, default=_utcnow, nullable=False)
    activated_at = Column(DateTime)
    completed_at = Column(DateTime)

    mentor = relationship("User", foreign_keys=[mentor_id])
    linked_startup = relationship("Startup")

    __table_args__ = (
        sa.CheckConstraint(
            "(startup_id IS NOT NULL) OR (manual_startup_name IS NOT NULL)",
            name="ck_assignment_startup_variant",
        ),
        sa.Index("ix_assignments_mentor_status", "mentor_id", "status"),
    )

    @property
    def startup(self) -> LinkedStartup | ManualStartup:
        if self.startup_id is not None:
            return LinkedStartup(startup_id=self.startup_id)
        return ManualStartup(
            name=self.manual_startup_name,
            email=self.manual_startup_email,
            website=self.manual_startup_website,
            sector=self.manual_startup_sector,
        )

    @startup.setter
    def startup(self, value: LinkedStartup | ManualStartup) -> None:
        if isinstance(value, LinkedStartup):
            self.startup_id = value.startup_id
            self.manual_startup_name = None
            self.manual_startup_email = None
            self.manual_startup_website = None
            self.manual_startup_sector = None
        else:
            self.startup_id = None
            self.manual_startup_name = value.name
            self.manual_startup_email = value.email
            self.manual_startup_website = value.website
            self.manual_startup_sector = value.sector

    @property
    def is_manual(self) -> bool:
        return self.startup_id is None

    @property
    def startup_name(self) -> str | None:
        if self.linked_startup is not None:
            return self.linked_startup.name
        return self.manual_startup_name


class AvailabilitySlot(Base):
    __tablename__ = "availability_slots"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    mentor_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    is_recurring = Column(Boolean, nullable=False, default=False)
    day_of_week = Column(Integer)  # 0=Sunday .. 6=Saturday
    specific_date = Column(Date)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    timezone = Column(String, nullable=False, default="UTC")
    valid_from = Column(Date)
    valid_until = Column(Date)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        sa.CheckConstraint(
            "(is_recurring AND day_of_week IS NOT NULL AND specific_date IS NULL)"
            " OR (NOT is_recurring AND day_of_week IS NULL AND specific_date IS NOT NULL)",
            name="ck_availability_slot_kind",
        ),
        sa.CheckConstraint(
            "day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)",
            name="ck_availability_slot_day_of_week",
        ),
        sa.CheckConstraint("start_time < end_time", name="ck_availability_slot_window"),
        sa.Index("ix_availability_slots_mentor_active", "mentor_id", "is_active"),
    )


class ScheduledSession(Base):
    __tablename__ = "scheduled_sessions"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    mentor_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    startup_id = Column(UUID(as_uuid=True), ForeignKey("startups.id"), nullable=False)
    assignment_id = Column(UUID(as_uuid=True), ForeignKey("assignments.id"), nullable=False)
    # informational; slot deletion leaves sessions untouched
    slot_id = Column(UUID(as_uuid=True))
    session_date = Column(Date, nullable=False)
    session_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=60)
    timezone = Column(String, nullable=False, default="UTC")
    status = _enum_column(SessionStatus, nullable=False, default=SessionStatus.SCHEDULED)
    conferencing_link = Column(String)
    agenda = Column(Text)
    feedback = Column(Text)
    created_at = Column(DateTime, default=_utcnow)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)
    completed_at = Column(DateTime)
    cancelled_at = Column(DateTime)

    startup = relationship("Startup")
    mentor = relationship("User", foreign_keys=[mentor_id])

    __table_args__ = (
        # the booking concurrency primitive: one scheduled session per mentor time
        sa.Index(
            "uq_mentor_session_slot",
            "mentor_id",
            "session_date",
            "session_time",
            unique=True,
            postgresql_where=sa.text("status = 'scheduled'"),
            sqlite_where=sa.text("status = 'scheduled'"),
        ),
        sa.CheckConstraint("duration_minutes > 0", name="ck_session_duration_positive"),
    )


class AuditLog(Base):
    __tablename__ = "audit_logs"
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"))
    action = Column(String, nullable=False)
    target_type = Column(String)
    target_id = Column(UUID(as_uuid=True))
    details = Column(JSON, default=dict)
    created_at = Column(DateTime, default=_utcnow)

    __table_args__ = (sa.Index("ix_audit_logs_target", "target_type", "target_id"),)
