"""Status workflows for tickets, work orders and building events.

Each entity kind has its own status enum and a static edge table mapping every
status to the set of statuses it may move to. ``request_transition`` validates
against that table before touching the record, then changes the status and
appends exactly one activity log entry. Nothing here persists or notifies;
callers commit the mutated record and dispatch notifications themselves.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple, Type, Union

from ..constants import ActivityAction, EventStatus, TicketStatus, WorkOrderStatus
from ..core.errors import InvalidTransition
from ..schemas.schemas import (
    ActivityLogEntry,
    ActivityPayload,
    BuildingEvent,
    StatusChangePayload,
    Ticket,
    WorkflowAction,
    WorkOrder,
)

logger = logging.getLogger(__name__)

WorkflowStatus = Union[TicketStatus, WorkOrderStatus, EventStatus]
WorkflowEntity = Union[Ticket, WorkOrder, BuildingEvent]

TICKET_TRANSITIONS: Dict[TicketStatus, FrozenSet[TicketStatus]] = {
    TicketStatus.NEW: frozenset({TicketStatus.MANAGER_REVIEW, TicketStatus.CLOSED}),
    TicketStatus.MANAGER_REVIEW: frozenset({TicketStatus.QUOTE_MANAGEMENT, TicketStatus.CLOSED}),
    TicketStatus.QUOTE_MANAGEMENT: frozenset(
        {TicketStatus.WORK_ORDER, TicketStatus.MANAGER_REVIEW, TicketStatus.CLOSED}
    ),
    TicketStatus.WORK_ORDER: frozenset(
        {TicketStatus.COMPLETE, TicketStatus.QUOTE_MANAGEMENT, TicketStatus.CLOSED}
    ),
    TicketStatus.COMPLETE: frozenset({TicketStatus.CLOSED}),
    TicketStatus.CLOSED: frozenset(),
}

WORK_ORDER_TRANSITIONS: Dict[WorkOrderStatus, FrozenSet[WorkOrderStatus]] = {
    WorkOrderStatus.TRIAGE: frozenset({WorkOrderStatus.QUOTING, WorkOrderStatus.CANCELLED}),
    WorkOrderStatus.QUOTING: frozenset({WorkOrderStatus.AWAITING_USER_FEEDBACK, WorkOrderStatus.CANCELLED}),
    WorkOrderStatus.AWAITING_USER_FEEDBACK: frozenset({WorkOrderStatus.SCHEDULED}),
    WorkOrderStatus.SCHEDULED: frozenset(
        {
            WorkOrderStatus.AWAITING_USER_FEEDBACK,
            WorkOrderStatus.RESOLVED,
            WorkOrderStatus.CANCELLED,
        }
    ),
    WorkOrderStatus.RESOLVED: frozenset({WorkOrderStatus.CLOSED}),
    WorkOrderStatus.CLOSED: frozenset(),
    WorkOrderStatus.CANCELLED: frozenset(),
}

EVENT_TRANSITIONS: Dict[EventStatus, FrozenSet[EventStatus]] = {
    EventStatus.SCHEDULED: frozenset({EventStatus.IN_PROGRESS, EventStatus.CANCELLED}),
    EventStatus.IN_PROGRESS: frozenset({EventStatus.COMPLETED, EventStatus.CANCELLED}),
    EventStatus.COMPLETED: frozenset({EventStatus.SCHEDULED}),
    EventStatus.CANCELLED: frozenset({EventStatus.SCHEDULED}),
}

TICKET_ACTIONS: Dict[TicketStatus, Tuple[Tuple[str, TicketStatus], ...]] = {
    TicketStatus.NEW: (
        ("Start Review", TicketStatus.MANAGER_REVIEW),
        ("Close Ticket", TicketStatus.CLOSED),
    ),
    TicketStatus.MANAGER_REVIEW: (
        ("Request Quotes", TicketStatus.QUOTE_MANAGEMENT),
        ("Close Ticket", TicketStatus.CLOSED),
    ),
    TicketStatus.QUOTE_MANAGEMENT: (
        ("Raise Work Order", TicketStatus.WORK_ORDER),
        ("Back to Review", TicketStatus.MANAGER_REVIEW),
        ("Close Ticket", TicketStatus.CLOSED),
    ),
    TicketStatus.WORK_ORDER: (
        ("Mark Complete", TicketStatus.COMPLETE),
        ("Re-quote", TicketStatus.QUOTE_MANAGEMENT),
        ("Close Ticket", TicketStatus.CLOSED),
    ),
    TicketStatus.COMPLETE: (("Close Ticket", TicketStatus.CLOSED),),
    TicketStatus.CLOSED: (),
}

WORK_ORDER_ACTIONS: Dict[WorkOrderStatus, Tuple[Tuple[str, WorkOrderStatus], ...]] = {
    WorkOrderStatus.TRIAGE: (
        ("Request Quotes", WorkOrderStatus.QUOTING),
        ("Cancel", WorkOrderStatus.CANCELLED),
    ),
    WorkOrderStatus.QUOTING: (
        ("Send to User", WorkOrderStatus.AWAITING_USER_FEEDBACK),
        ("Cancel", WorkOrderStatus.CANCELLED),
    ),
    WorkOrderStatus.AWAITING_USER_FEEDBACK: (("Schedule Work", WorkOrderStatus.SCHEDULED),),
    WorkOrderStatus.SCHEDULED: (
        ("Mark Resolved", WorkOrderStatus.RESOLVED),
        ("Ask User", WorkOrderStatus.AWAITING_USER_FEEDBACK),
        ("Cancel", WorkOrderStatus.CANCELLED),
    ),
    WorkOrderStatus.RESOLVED: (("Close", WorkOrderStatus.CLOSED),),
    WorkOrderStatus.CLOSED: (),
    WorkOrderStatus.CANCELLED: (),
}

EVENT_ACTIONS: Dict[EventStatus, Tuple[Tuple[str, EventStatus], ...]] = {
    EventStatus.SCHEDULED: (
        ("Start Event", EventStatus.IN_PROGRESS),
        ("Cancel", EventStatus.CANCELLED),
    ),
    EventStatus.IN_PROGRESS: (
        ("Complete", EventStatus.COMPLETED),
        ("Cancel", EventStatus.CANCELLED),
    ),
    EventStatus.COMPLETED: (("Reopen", EventStatus.SCHEDULED),),
    EventStatus.CANCELLED: (("Reschedule", EventStatus.SCHEDULED),),
}

# Keyed by enum class: the ticket and work-order "Closed" members compare equal as strings.
_TRANSITIONS: Dict[Type[Enum], Dict] = {
    TicketStatus: TICKET_TRANSITIONS,
    WorkOrderStatus: WORK_ORDER_TRANSITIONS,
    EventStatus: EVENT_TRANSITIONS,
}

_ACTIONS: Dict[Type[Enum], Dict] = {
    TicketStatus: TICKET_ACTIONS,
    WorkOrderStatus: WORK_ORDER_ACTIONS,
    EventStatus: EVENT_ACTIONS,
}

_STATUS_TYPES: Dict[type, Type[Enum]] = {
    Ticket: TicketStatus,
    WorkOrder: WorkOrderStatus,
    BuildingEvent: EventStatus,
}


def _check_tables() -> None:
    for status_type, transitions in _TRANSITIONS.items():
        actions = _ACTIONS[status_type]
        for member in status_type:
            if member not in transitions or member not in actions:
                raise RuntimeError(f"{status_type.__name__}.{member.name} missing from workflow tables.")
            action_targets = {target for _, target in actions[member]}
            if action_targets != set(transitions[member]):
                raise RuntimeError(f"Actions for {member.value!r} do not match its allowed transitions.")


_check_tables()


def _table_for(status: WorkflowStatus) -> Dict:
    table = _TRANSITIONS.get(type(status))
    if table is None:
        raise TypeError(f"Unsupported workflow status: {status!r}")
    return table


def status_type_for(entity: WorkflowEntity) -> Type[Enum]:
    for model, status_type in _STATUS_TYPES.items():
        if isinstance(entity, model):
            return status_type
    raise TypeError(f"Unsupported workflow entity: {type(entity).__name__}")


def allowed_targets(status: WorkflowStatus) -> FrozenSet:
    return _table_for(status)[status]


def is_terminal(status: WorkflowStatus) -> bool:
    return not allowed_targets(status)


def can_transition(status: WorkflowStatus, target_status: WorkflowStatus) -> bool:
    return type(target_status) is type(status) and target_status in allowed_targets(status)


def available_actions(status: WorkflowStatus) -> List[WorkflowAction]:
    """Return the UI actions offered from ``status``; terminal states yield ``[]``."""
    actions = _ACTIONS.get(type(status))
    if actions is None:
        raise TypeError(f"Unsupported workflow status: {status!r}")
    return [WorkflowAction(label=label, target_status=target.value) for label, target in actions[status]]


def append_activity(
    entity: WorkflowEntity,
    action: ActivityAction,
    description: str,
    actor: str,
    payload: Optional[ActivityPayload] = None,
    now: Optional[datetime] = None,
) -> ActivityLogEntry:
    timestamp = now or datetime.now(timezone.utc)
    entry = ActivityLogEntry(
        action=action,
        description=description,
        performed_by=actor,
        timestamp=timestamp,
        payload=payload,
    )
    entity.activity_log = [*entity.activity_log, entry]
    entity.updated_at = timestamp
    return entry


def request_transition(
    entity: WorkflowEntity,
    target_status: Union[WorkflowStatus, str],
    actor: str,
    *,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> WorkflowEntity:
    status_type = status_type_for(entity)
    current = entity.status
    if isinstance(target_status, Enum) and not isinstance(target_status, status_type):
        raise InvalidTransition(current.value, target_status)
    try:
        target = status_type(target_status)
    except ValueError as exc:
        raise InvalidTransition(current.value, target_status) from exc

    if target not in _TRANSITIONS[status_type][current]:
        logger.info(
            "Rejected %s transition %s -> %s for %s",
            status_type.__name__,
            current.value,
            target.value,
            entity.id,
        )
        raise InvalidTransition(current.value, target)

    timestamp = now or datetime.now(timezone.utc)
    entity.status = target
    if isinstance(entity, Ticket) and target == TicketStatus.COMPLETE:
        entity.completed_date = timestamp
    if isinstance(entity, WorkOrder) and target == WorkOrderStatus.RESOLVED:
        entity.resolved_at = timestamp

    description = f"Status changed from {current.value} to {target.value}"
    if note:
        description = f"{description}: {note}"
    append_activity(
        entity,
        ActivityAction.STATUS_CHANGED,
        description,
        actor,
        payload=StatusChangePayload(previous_status=current.value, new_status=target.value, note=note),
        now=timestamp,
    )
    logger.info(
        "%s %s moved %s -> %s by %s", status_type.__name__, entity.id, current.value, target.value, actor
    )
    return entity
