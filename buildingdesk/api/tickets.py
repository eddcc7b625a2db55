from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ..api.dependencies import get_context
from ..constants import QuoteStatus, TicketStatus
from ..schemas.schemas import (
    BuildingEventRead,
    CommentCreate,
    FeedbackCreate,
    QuoteCreate,
    QuoteDecision,
    ScheduleRequest,
    Ticket,
    TicketCreate,
    TicketRead,
    TicketTransitionRequest,
)
from ..services import events as event_service
from ..services import tickets as ticket_service
from ..services.context import WorkflowContext
from ..services.workflow import available_actions

router = APIRouter()


def _serialize_ticket(ticket: Ticket) -> TicketRead:
    return TicketRead(**ticket.model_dump(), available_actions=available_actions(ticket.status))


@router.get("/", response_model=List[TicketRead])
def list_tickets(
    status_filter: Optional[TicketStatus] = Query(default=None, alias="status"),
    ctx: WorkflowContext = Depends(get_context),
) -> List[TicketRead]:
    return [_serialize_ticket(ticket) for ticket in ticket_service.list_tickets(ctx, status=status_filter)]


@router.post("/", response_model=TicketRead, status_code=status.HTTP_201_CREATED)
def create_ticket(payload: TicketCreate, ctx: WorkflowContext = Depends(get_context)) -> TicketRead:
    return _serialize_ticket(ticket_service.create_ticket(ctx, payload))


@router.get("/{ticket_id}", response_model=TicketRead)
def get_ticket(ticket_id: str, ctx: WorkflowContext = Depends(get_context)) -> TicketRead:
    return _serialize_ticket(ticket_service.get_ticket(ctx, ticket_id))


@router.post("/{ticket_id}/transition", response_model=TicketRead)
def transition_ticket(
    ticket_id: str,
    payload: TicketTransitionRequest,
    ctx: WorkflowContext = Depends(get_context),
) -> TicketRead:
    ticket = ticket_service.transition_ticket(ctx, ticket_id, payload.target_status, note=payload.note)
    return _serialize_ticket(ticket)


@router.post("/{ticket_id}/quotes", response_model=TicketRead, status_code=status.HTTP_201_CREATED)
def add_quote(ticket_id: str, payload: QuoteCreate, ctx: WorkflowContext = Depends(get_context)) -> TicketRead:
    return _serialize_ticket(ticket_service.add_quote(ctx, ticket_id, payload))


@router.post("/{ticket_id}/quotes/{quote_id}/decision", response_model=TicketRead)
def decide_quote(
    ticket_id: str,
    quote_id: str,
    payload: QuoteDecision,
    ctx: WorkflowContext = Depends(get_context),
) -> TicketRead:
    ticket = ticket_service.decide_quote(ctx, ticket_id, quote_id, QuoteStatus(payload.status))
    return _serialize_ticket(ticket)


@router.post("/{ticket_id}/comments", response_model=TicketRead, status_code=status.HTTP_201_CREATED)
def add_comment(ticket_id: str, payload: CommentCreate, ctx: WorkflowContext = Depends(get_context)) -> TicketRead:
    return _serialize_ticket(ticket_service.add_comment(ctx, ticket_id, payload))


@router.post("/{ticket_id}/feedback", response_model=TicketRead)
def submit_feedback(
    ticket_id: str, payload: FeedbackCreate, ctx: WorkflowContext = Depends(get_context)
) -> TicketRead:
    return _serialize_ticket(ticket_service.submit_feedback(ctx, ticket_id, payload))


@router.post("/{ticket_id}/schedule", response_model=TicketRead)
def schedule_ticket(
    ticket_id: str, payload: ScheduleRequest, ctx: WorkflowContext = Depends(get_context)
) -> TicketRead:
    scheduled_date: datetime = payload.scheduled_date
    return _serialize_ticket(ticket_service.schedule_ticket(ctx, ticket_id, scheduled_date))


@router.get("/{ticket_id}/events", response_model=List[BuildingEventRead])
def list_ticket_events(ticket_id: str, ctx: WorkflowContext = Depends(get_context)) -> List[BuildingEventRead]:
    ticket = ticket_service.get_ticket(ctx, ticket_id)
    return [
        BuildingEventRead(**event.model_dump(), available_actions=available_actions(event.status))
        for event in event_service.list_events(ctx, ticket_id=ticket.id)
    ]
