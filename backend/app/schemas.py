from datetime import date, datetime, time
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, EmailStr, ConfigDict, Field
from uuid import UUID

from .models import (
    AgreementStatus,
    AssignmentStatus,
    FeeType,
    PaymentStatus,
    RequestStatus,
    SessionStatus,
    UserRole,
)


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    full_name: Optional[str] = None
    role: Literal["mentor", "startup"] = "startup"


class UserOut(BaseModel):
    id: UUID
    email: EmailStr
    full_name: Optional[str] = None
    role: UserRole
    model_config = ConfigDict(from_attributes=True)


class UserUpdate(BaseModel):
    full_name: Optional[str] = None


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class MentorProfileUpdate(BaseModel):
    display_name: Optional[str] = None
    fee_type: FeeType = FeeType.FREE
    fee_currency: str = Field(default="USD", min_length=3, max_length=3)
    fee_amount: Optional[float] = Field(default=None, ge=0)
    equity_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    timezone: str = "UTC"


class MentorProfileOut(BaseModel):
    user_id: UUID
    display_name: Optional[str] = None
    fee_type: FeeType
    fee_currency: str
    fee_amount: Optional[float] = None
    equity_percentage: Optional[float] = None
    timezone: str
    model_config = ConfigDict(from_attributes=True)


class StartupCreate(BaseModel):
    name: str = Field(min_length=1)
    sector: Optional[str] = None
    website: Optional[str] = None


class StartupOut(BaseModel):
    id: UUID
    owner_id: UUID
    name: str
    sector: Optional[str] = None
    website: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class EngagementRequestCreate(BaseModel):
    mentor_id: UUID
    startup_id: UUID
    fee_type: Optional[FeeType] = None
    proposed_fee_amount: Optional[float] = Field(default=None, ge=0)
    proposed_equity_amount: Optional[float] = Field(default=None, ge=0)
    proposed_esop_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    fee_currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    message: Optional[str] = None


class EngagementRequestOut(BaseModel):
    id: UUID
    startup_id: UUID
    mentor_id: UUID
    requester_id: UUID
    status: RequestStatus
    fee_type: FeeType
    proposed_fee_amount: Optional[float] = None
    proposed_equity_amount: Optional[float] = None
    proposed_esop_percentage: Optional[float] = None
    fee_currency: str
    message: Optional[str] = None
    requested_at: datetime
    responded_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class LinkedStartupOut(BaseModel):
    kind: Literal["linked"] = "linked"
    startup_id: UUID
    name: Optional[str] = None


class ManualStartupIn(BaseModel):
    kind: Literal["manual"] = "manual"
    name: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    website: Optional[str] = None
    sector: Optional[str] = None


StartupRef = Annotated[
    Union[LinkedStartupOut, ManualStartupIn], Field(discriminator="kind")
]


class AssignmentOut(BaseModel):
    id: UUID
    mentor_id: UUID
    startup: StartupRef
    request_id: Optional[UUID] = None
    status: AssignmentStatus
    fee_type: FeeType
    fee_amount: float
    fee_currency: str
    esop_percentage: float
    esop_value: float
    payment_status: Optional[PaymentStatus] = None
    agreement_status: Optional[AgreementStatus] = None
    agreement_url: Optional[str] = None
    mentor_signed_agreement_url: Optional[str] = None
    assigned_at: datetime
    activated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ManualEngagementCreate(BaseModel):
    startup: ManualStartupIn
    status: Literal["active", "completed"] = "active"
    fee_amount: float = Field(default=0, ge=0)
    fee_currency: str = Field(default="USD", min_length=3, max_length=3)
    esop_percentage: float = Field(default=0, ge=0, le=100)
    esop_value: float = Field(default=0, ge=0)


class PaymentCompletion(BaseModel):
    payment_reference: Optional[str] = None


class AgreementUpload(BaseModel):
    agreement_url: str = Field(min_length=1)


class SignedAgreementUpload(BaseModel):
    signed_agreement_url: str = Field(min_length=1)
    auto_approve: bool = True


class MentorMetricsOut(BaseModel):
    requests_received: int
    startups_mentoring: int
    startups_mentored_previously: int
    total_fees: float
    total_esop_value: float
    pending_requests: List[EngagementRequestOut] = Field(default_factory=list)
    active_assignments: List[AssignmentOut] = Field(default_factory=list)
    completed_assignments: List[AssignmentOut] = Field(default_factory=list)


class AvailabilitySlotCreate(BaseModel):
    is_recurring: bool
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    specific_date: Optional[date] = None
    start_time: time
    end_time: time
    timezone: str = "UTC"
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    is_active: bool = True


class AvailabilitySlotUpdate(BaseModel):
    is_recurring: Optional[bool] = None
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    specific_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    timezone: Optional[str] = None
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None


class AvailabilitySlotOut(BaseModel):
    id: UUID
    mentor_id: UUID
    is_recurring: bool
    day_of_week: Optional[int] = None
    specific_date: Optional[date] = None
    start_time: time
    end_time: time
    timezone: str
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    is_active: bool
    next_occurrence: Optional[date] = None
    is_booked: bool = False
    booked_by: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class SlotOccurrenceOut(BaseModel):
    slot_id: UUID
    date: date
    start_time: time
    end_time: time
    timezone: str
    is_recurring: bool
    is_booked: bool = False
    booked_by: Optional[str] = None


class SessionBookingCreate(BaseModel):
    assignment_id: UUID
    slot_id: UUID
    session_date: date
    session_time: time
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    agenda: Optional[str] = None


class SessionOut(BaseModel):
    id: UUID
    mentor_id: UUID
    startup_id: UUID
    assignment_id: UUID
    slot_id: Optional[UUID] = None
    session_date: date
    session_time: time
    duration_minutes: int
    timezone: str
    status: SessionStatus
    conferencing_link: Optional[str] = None
    agenda: Optional[str] = None
    feedback: Optional[str] = None
    created_at: datetime
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    display_status: Literal["upcoming", "past_not_completed", "completed", "cancelled"] = "upcoming"
    counterpart_name: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class SessionCompletion(BaseModel):
    feedback: Optional[str] = None


class ConferencingLinkUpdate(BaseModel):
    conferencing_link: str = Field(min_length=1)


class AuditLogOut(BaseModel):
    id: UUID
    user_id: Optional[UUID] = None
    action: str
    target_type: Optional[str] = None
    target_id: Optional[UUID] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
