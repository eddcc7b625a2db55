from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from ..constants import EVENTS, ActivityAction, EventStatus
from ..core.errors import ValidationFailure
from ..schemas.schemas import BuildingEvent, EventCreate, EventUpdate, Ticket
from .context import WorkflowContext
from .workflow import append_activity, can_transition, request_transition

logger = logging.getLogger(__name__)

_TRANSITION_FIELDS = {"status", "activity_log", "updated_at"}


def _ensure_window(start_date: datetime, end_date: datetime) -> None:
    if end_date <= start_date:
        raise ValidationFailure("Event end time must be after its start time.")


def _persist(ctx: WorkflowContext, event: BuildingEvent, fields: set[str]) -> BuildingEvent:
    ctx.store.update(EVENTS, event.id, event.model_dump(mode="json", include=fields))
    return event


def create_event(ctx: WorkflowContext, payload: EventCreate) -> BuildingEvent:
    _ensure_window(payload.start_date, payload.end_date)
    now = ctx.now()
    event = BuildingEvent(
        building_id=ctx.building_id,
        title=payload.title,
        description=payload.description,
        location=payload.location,
        start_date=payload.start_date,
        end_date=payload.end_date,
        ticket_id=payload.ticket_id,
        work_order_id=payload.work_order_id,
        assigned_to=list(payload.assigned_to),
        created_at=now,
        updated_at=now,
    )
    append_activity(event, ActivityAction.CREATED, "Event scheduled", ctx.actor_id, now=now)
    ctx.store.create(EVENTS, event.model_dump(mode="json"))
    logger.info("Created event %s in building %s", event.id, ctx.building_id)
    return event


def get_event(ctx: WorkflowContext, event_id: str) -> BuildingEvent:
    return ctx.load(EVENTS, event_id, BuildingEvent)


def list_events(ctx: WorkflowContext, ticket_id: Optional[str] = None) -> List[BuildingEvent]:
    events = ctx.load_all(EVENTS, BuildingEvent, ticket_id=ticket_id)
    return sorted(events, key=lambda event: event.start_date, reverse=True)


def update_event(ctx: WorkflowContext, event_id: str, payload: EventUpdate) -> BuildingEvent:
    event = get_event(ctx, event_id)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    _ensure_window(changes.get("start_date", event.start_date), changes.get("end_date", event.end_date))

    for key, value in changes.items():
        setattr(event, key, value)
    append_activity(
        event,
        ActivityAction.UPDATED,
        f"Updated {', '.join(sorted(changes)) or 'nothing'}",
        ctx.actor_id,
        now=ctx.now(),
    )
    return _persist(ctx, event, set(changes) | {"activity_log", "updated_at"})


def transition_event(
    ctx: WorkflowContext, event_id: str, target_status: EventStatus, note: Optional[str] = None
) -> BuildingEvent:
    event = get_event(ctx, event_id)
    request_transition(event, target_status, ctx.actor_id, note=note, now=ctx.now())
    return _persist(ctx, event, _TRANSITION_FIELDS)


def delete_event(ctx: WorkflowContext, event_id: str) -> None:
    event = get_event(ctx, event_id)
    ctx.store.delete(EVENTS, event.id)
    logger.info("Deleted event %s", event.id)


def schedule_event_for_ticket(ctx: WorkflowContext, ticket: Ticket, scheduled_date: datetime) -> BuildingEvent:
    """Create the ticket's work event, or move the latest one keeping its duration."""
    existing = list_events(ctx, ticket_id=ticket.id)
    if existing:
        event = existing[0]
        duration = event.end_date - event.start_date
        return update_event(
            ctx,
            event.id,
            EventUpdate(start_date=scheduled_date, end_date=scheduled_date + duration),
        )

    assigned = [ctx.actor_id]
    if ticket.assigned_to and ticket.assigned_to != ctx.actor_id:
        assigned.insert(0, ticket.assigned_to)
    return create_event(
        ctx,
        EventCreate(
            title=f"Work: {ticket.title}",
            description=f"Scheduled work for ticket: {ticket.description}",
            location=ticket.location,
            start_date=scheduled_date,
            end_date=scheduled_date + timedelta(hours=ctx.settings.default_event_duration_hours),
            ticket_id=ticket.id,
            assigned_to=assigned,
        ),
    )


def _path_to(status: EventStatus, target_status: EventStatus) -> List[EventStatus]:
    if can_transition(status, target_status):
        return [target_status]
    # no direct scheduled -> completed edge; pass through in-progress
    if status == EventStatus.SCHEDULED and target_status == EventStatus.COMPLETED:
        return [EventStatus.IN_PROGRESS, EventStatus.COMPLETED]
    return []


def sync_ticket_events(ctx: WorkflowContext, ticket_id: str, target_status: EventStatus) -> List[BuildingEvent]:
    """Move the ticket's open events to ``target_status`` along legal edges, one log entry per hop."""
    moved: List[BuildingEvent] = []
    for event in list_events(ctx, ticket_id=ticket_id):
        if event.status in (EventStatus.COMPLETED, EventStatus.CANCELLED):
            continue
        path = _path_to(event.status, target_status)
        if not path:
            logger.debug(
                "Leaving event %s in %s; cannot move to %s", event.id, event.status.value, target_status.value
            )
            continue
        for hop in path:
            event = transition_event(ctx, event.id, hop, note=f"Ticket {ticket_id} updated")
        moved.append(event)
    return moved
