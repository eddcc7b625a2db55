import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, condecimal, conint

from ..constants import (
    ActivityAction,
    DemandStatus,
    EventStatus,
    IncomeSource,
    NotificationKind,
    PaymentMethod,
    PenaltyType,
    Priority,
    QuoteRequestStatus,
    QuoteStatus,
    TicketStatus,
    Urgency,
    WorkOrderStatus,
)


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


# --- Activity log ---


class StatusChangePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["status_change"] = "status_change"
    previous_status: Optional[str] = None
    new_status: str
    note: Optional[str] = None


class QuotePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["quote"] = "quote"
    quote_id: str
    supplier_id: str
    amount: Optional[Decimal] = None
    status: Optional[str] = None


class CommentPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["comment"] = "comment"
    comment_id: str


class FeedbackPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["feedback"] = "feedback"
    rating: Optional[int] = None
    comment: Optional[str] = None


class NotePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["note"] = "note"
    cost: Optional[Decimal] = None


class SchedulePayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["schedule"] = "schedule"
    scheduled_date: UtcDatetime
    event_id: Optional[str] = None
    supplier_id: Optional[str] = None


ActivityPayload = Annotated[
    Union[StatusChangePayload, QuotePayload, CommentPayload, FeedbackPayload, NotePayload, SchedulePayload],
    Field(discriminator="kind"),
]


class ActivityLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    action: ActivityAction
    description: str
    performed_by: str
    timestamp: UtcDatetime
    payload: Optional[ActivityPayload] = None


class WorkflowAction(BaseModel):
    label: str
    target_status: str


# --- Tickets ---


class Quote(BaseModel):
    id: str = Field(default_factory=new_id)
    supplier_id: str
    amount: Decimal
    currency: str = "GBP"
    description: str = ""
    terms: str = ""
    valid_until: Optional[date] = None
    status: QuoteStatus = QuoteStatus.PENDING
    submitted_at: UtcDatetime = Field(default_factory=utcnow)
    attachments: List[str] = []


class TicketComment(BaseModel):
    id: str = Field(default_factory=new_id)
    author_id: str
    body: str
    created_at: UtcDatetime = Field(default_factory=utcnow)


class Feedback(BaseModel):
    rating: conint(ge=1, le=5)
    comment: Optional[str] = None
    submitted_by: str
    submitted_at: UtcDatetime = Field(default_factory=utcnow)


class Ticket(BaseModel):
    id: str = Field(default_factory=new_id)
    building_id: str
    title: str
    description: str = ""
    location: str = ""
    urgency: Urgency = Urgency.MEDIUM
    status: TicketStatus = TicketStatus.NEW
    requested_by: str
    assigned_to: Optional[str] = None
    attachments: List[str] = []
    activity_log: List[ActivityLogEntry] = []
    quotes: List[Quote] = []
    comments: List[TicketComment] = []
    scheduled_date: Optional[UtcDatetime] = None
    completed_date: Optional[UtcDatetime] = None
    feedback: Optional[Feedback] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)


class TicketCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    location: str = ""
    urgency: Urgency = Urgency.MEDIUM
    assigned_to: Optional[str] = None
    attachments: List[str] = []


class TicketTransitionRequest(BaseModel):
    target_status: TicketStatus
    note: Optional[str] = None


class QuoteCreate(BaseModel):
    supplier_id: str
    amount: condecimal(ge=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = None
    description: str = ""
    terms: str = ""
    valid_until: Optional[date] = None
    attachments: List[str] = []


class QuoteDecision(BaseModel):
    status: Literal["accepted", "declined"]


class CommentCreate(BaseModel):
    body: str = Field(min_length=1)


class FeedbackCreate(BaseModel):
    rating: conint(ge=1, le=5)
    comment: Optional[str] = None


class ScheduleRequest(BaseModel):
    scheduled_date: UtcDatetime
    supplier_id: Optional[str] = None
    supplier_name: Optional[str] = None


class TicketRead(Ticket):
    available_actions: List[WorkflowAction] = []


# --- Work orders ---


class QuoteRequest(BaseModel):
    supplier_id: str
    supplier_name: str
    sent_at: UtcDatetime = Field(default_factory=utcnow)
    quote_amount: Optional[Decimal] = None
    quote_document: Optional[str] = None
    notes: Optional[str] = None
    status: QuoteRequestStatus = QuoteRequestStatus.PENDING
    updated_at: Optional[UtcDatetime] = None


class UserFeedback(BaseModel):
    rating: Optional[conint(ge=1, le=5)] = None
    comment: Optional[str] = None
    user_id: str
    submitted_at: UtcDatetime = Field(default_factory=utcnow)


class WorkOrder(BaseModel):
    id: str = Field(default_factory=new_id)
    building_id: str
    flat_id: Optional[str] = None
    ticket_id: Optional[str] = None
    title: str
    description: str = ""
    priority: Priority = Priority.MEDIUM
    status: WorkOrderStatus = WorkOrderStatus.TRIAGE
    created_by: str
    supplier_id: Optional[str] = None
    supplier_name: Optional[str] = None
    scheduled_date: Optional[UtcDatetime] = None
    quote_requests: List[QuoteRequest] = []
    activity_log: List[ActivityLogEntry] = []
    user_feedback: Optional[UserFeedback] = None
    resolution_notes: Optional[str] = None
    cost: Optional[Decimal] = None
    resolved_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)


class WorkOrderCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    priority: Priority = Priority.MEDIUM
    flat_id: Optional[str] = None
    ticket_id: Optional[str] = None


class WorkOrderTransitionRequest(BaseModel):
    target_status: WorkOrderStatus
    note: Optional[str] = None


class QuoteRequestCreate(BaseModel):
    supplier_id: str
    supplier_name: str
    notes: Optional[str] = None


class QuoteRequestUpdate(BaseModel):
    status: QuoteRequestStatus
    quote_amount: Optional[condecimal(ge=0, max_digits=12, decimal_places=2)] = None
    quote_document: Optional[str] = None


class UserFeedbackCreate(BaseModel):
    rating: Optional[conint(ge=1, le=5)] = None
    comment: Optional[str] = None


class ResolutionNoteCreate(BaseModel):
    note: str = Field(min_length=1)
    cost: Optional[condecimal(ge=0, max_digits=12, decimal_places=2)] = None


class WorkOrderRead(WorkOrder):
    available_actions: List[WorkflowAction] = []


# --- Events ---


class BuildingEvent(BaseModel):
    id: str = Field(default_factory=new_id)
    building_id: str
    title: str
    description: str = ""
    location: str = ""
    start_date: UtcDatetime
    end_date: UtcDatetime
    ticket_id: Optional[str] = None
    work_order_id: Optional[str] = None
    assigned_to: List[str] = []
    status: EventStatus = EventStatus.SCHEDULED
    activity_log: List[ActivityLogEntry] = []
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)


class EventCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    location: str = ""
    start_date: UtcDatetime
    end_date: UtcDatetime
    ticket_id: Optional[str] = None
    work_order_id: Optional[str] = None
    assigned_to: List[str] = []


class EventUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    assigned_to: Optional[List[str]] = None


class EventTransitionRequest(BaseModel):
    target_status: EventStatus
    note: Optional[str] = None


class BuildingEventRead(BuildingEvent):
    available_actions: List[WorkflowAction] = []


# --- Service charges ---


class PenaltyConfig(BaseModel):
    type: PenaltyType = PenaltyType.FLAT
    flat_amount: Optional[condecimal(ge=0)] = Decimal("0")
    percentage: Optional[condecimal(ge=0, le=100)] = None
    grace_period_days: conint(ge=0) = 0
    max_penalty_amount: Optional[condecimal(ge=0)] = None


class ReminderConfig(BaseModel):
    reminder_days: List[int] = [7, 3, 1]
    max_reminders: conint(ge=0) = 3


class PaymentRecord(BaseModel):
    payment_id: str = Field(default_factory=new_id)
    payment_date: date
    amount: Decimal
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    reference: Optional[str] = None
    notes: Optional[str] = None
    recorded_by: str
    recorded_at: UtcDatetime = Field(default_factory=utcnow)


class ServiceChargeDemand(BaseModel):
    id: str = Field(default_factory=new_id)
    building_id: str
    flat_id: str
    flat_number: str = ""
    resident_id: Optional[str] = None
    resident_name: Optional[str] = None
    financial_period: str
    area_sq_ft: Decimal = Decimal("0")
    rate_applied: Decimal = Decimal("0")
    base_amount: Decimal = Decimal("0")
    ground_rent_amount: Decimal = Decimal("0")
    penalty_amount_applied: Decimal = Decimal("0")
    total_amount_due: Decimal = Decimal("0")
    amount_paid: Decimal = Decimal("0")
    outstanding_amount: Decimal = Decimal("0")
    due_date: date
    issued_date: date
    status: DemandStatus = DemandStatus.ISSUED
    payment_history: List[PaymentRecord] = []
    notes: str = ""
    issued_by: str
    penalty_config: PenaltyConfig = Field(default_factory=PenaltyConfig)
    reminders_config: ReminderConfig = Field(default_factory=ReminderConfig)
    reminders_sent: int = 0
    last_reminder_sent_at: Optional[UtcDatetime] = None
    penalty_applied_at: Optional[UtcDatetime] = None
    # reminders_sent value at the time of the last automatic penalty
    penalty_cycle: Optional[int] = None
    created_at: UtcDatetime = Field(default_factory=utcnow)
    updated_at: UtcDatetime = Field(default_factory=utcnow)


class DemandCreate(BaseModel):
    flat_id: str
    flat_number: str = ""
    resident_id: Optional[str] = None
    resident_name: Optional[str] = None
    financial_period: str
    area_sq_ft: condecimal(ge=0) = Decimal("0")
    rate_applied: condecimal(ge=0) = Decimal("0")
    base_amount: Optional[condecimal(ge=0)] = None
    ground_rent_amount: condecimal(ge=0) = Decimal("0")
    amount_paid: condecimal(ge=0) = Decimal("0")
    due_date: date
    issued_date: Optional[date] = None
    notes: str = ""
    penalty_config: Optional[PenaltyConfig] = None
    reminders_config: Optional[ReminderConfig] = None


class DemandGenerate(BaseModel):
    financial_period: str
    rate_per_sq_ft: condecimal(ge=0)
    due_date: date
    include_ground_rent: bool = False
    penalty_config: Optional[PenaltyConfig] = None
    reminders_config: Optional[ReminderConfig] = None


class PaymentCreate(BaseModel):
    amount: condecimal(gt=0, max_digits=12, decimal_places=2)
    payment_date: Optional[date] = None
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    reference: Optional[str] = None
    notes: Optional[str] = None


class ManualPenaltyCreate(BaseModel):
    amount: condecimal(gt=0, max_digits=12, decimal_places=2)


class PenaltyRunRequest(BaseModel):
    as_of: Optional[date] = None


class PenaltyRunResult(BaseModel):
    as_of: date
    penalized_demand_ids: List[str]


class FlatCreate(BaseModel):
    flat_number: str = Field(min_length=1)
    area_sq_ft: condecimal(ge=0) = Decimal("0")
    ground_rent: condecimal(ge=0) = Decimal("0")
    resident_id: Optional[str] = None
    resident_name: Optional[str] = None


class Flat(BaseModel):
    id: str = Field(default_factory=new_id)
    building_id: str
    flat_number: str
    area_sq_ft: Decimal = Decimal("0")
    ground_rent: Decimal = Decimal("0")
    resident_id: Optional[str] = None
    resident_name: Optional[str] = None


class IncomeEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    building_id: str
    income_date: date
    amount: Decimal
    source: IncomeSource
    description: str
    related_demand_id: Optional[str] = None
    recorded_by: str
    created_at: UtcDatetime = Field(default_factory=utcnow)


# --- Notifications ---


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    title: str
    message: str
    kind: NotificationKind
    building_id: Optional[str] = None
    link_url: Optional[str] = None
    created_at: UtcDatetime
    read_at: Optional[UtcDatetime] = None
