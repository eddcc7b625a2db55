from enum import Enum


class TicketStatus(str, Enum):
    NEW = "New Ticket"
    MANAGER_REVIEW = "Manager Review"
    QUOTE_MANAGEMENT = "Quote Management"
    WORK_ORDER = "Work Order"
    COMPLETE = "Complete"
    CLOSED = "Closed"


class WorkOrderStatus(str, Enum):
    TRIAGE = "Triage"
    QUOTING = "Quoting"
    AWAITING_USER_FEEDBACK = "Awaiting User Feedback"
    SCHEDULED = "Scheduled"
    RESOLVED = "Resolved"
    CLOSED = "Closed"
    CANCELLED = "Cancelled"


class EventStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DemandStatus(str, Enum):
    ISSUED = "Issued"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"
    OVERDUE = "Overdue"


class Urgency(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class QuoteStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class QuoteRequestStatus(str, Enum):
    PENDING = "Pending"
    RECEIVED = "Received"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"


class ActivityAction(str, Enum):
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    QUOTE_ADDED = "quote_added"
    QUOTE_DECIDED = "quote_decided"
    COMMENT_ADDED = "comment_added"
    FEEDBACK_ADDED = "feedback_added"
    NOTE_ADDED = "note_added"
    SCHEDULED = "scheduled"
    UPDATED = "updated"


class PenaltyType(str, Enum):
    FLAT = "flat"
    PERCENTAGE = "percentage"
    BOTH = "both"


class PaymentMethod(str, Enum):
    ONLINE = "Online"
    BANK_TRANSFER = "Bank Transfer"
    CHEQUE = "Cheque"
    CASH = "Cash"
    OTHER = "Other"


class IncomeSource(str, Enum):
    BUILDING_CHARGES = "building_charges"
    PENALTY = "penalty"


class NotificationKind(str, Enum):
    INFO = "info"
    WARNING = "warning"
    REMINDER = "reminder"


# Document store collections
TICKETS = "tickets"
WORK_ORDERS = "workOrders"
EVENTS = "buildingEvents"
SERVICE_CHARGE_DEMANDS = "serviceChargeDemands"
FLATS = "flats"
INCOME = "income"
