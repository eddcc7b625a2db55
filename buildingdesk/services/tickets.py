from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from ..constants import TICKETS, ActivityAction, EventStatus, NotificationKind, QuoteStatus, TicketStatus
from ..core.errors import RecordNotFound, ValidationFailure
from ..schemas.schemas import (
    CommentCreate,
    CommentPayload,
    Feedback,
    FeedbackCreate,
    FeedbackPayload,
    Quote,
    QuoteCreate,
    QuotePayload,
    SchedulePayload,
    Ticket,
    TicketComment,
    TicketCreate,
)
from .context import WorkflowContext
from .events import schedule_event_for_ticket, sync_ticket_events
from .workflow import append_activity, request_transition

logger = logging.getLogger(__name__)

FEEDBACK_STATUSES = {TicketStatus.COMPLETE, TicketStatus.CLOSED}
QUOTE_STATUSES = {TicketStatus.MANAGER_REVIEW, TicketStatus.QUOTE_MANAGEMENT}

TICKET_LINK = "/tickets/{ticket_id}"


def _persist(ctx: WorkflowContext, ticket: Ticket, *fields: str) -> Ticket:
    include = {"activity_log", "updated_at", *fields}
    ctx.store.update(TICKETS, ticket.id, ticket.model_dump(mode="json", include=include))
    return ticket


def _notify_requester(ctx: WorkflowContext, ticket: Ticket, title: str, message: str) -> None:
    if ticket.requested_by == ctx.actor_id:
        return
    ctx.notifier.notify(
        ticket.requested_by,
        title=title,
        message=message,
        kind=NotificationKind.INFO,
        link_url=TICKET_LINK.format(ticket_id=ticket.id),
    )


def create_ticket(ctx: WorkflowContext, payload: TicketCreate) -> Ticket:
    now = ctx.now()
    ticket = Ticket(
        building_id=ctx.building_id,
        title=payload.title,
        description=payload.description,
        location=payload.location,
        urgency=payload.urgency,
        requested_by=ctx.actor_id,
        assigned_to=payload.assigned_to,
        attachments=list(payload.attachments),
        created_at=now,
        updated_at=now,
    )
    append_activity(ticket, ActivityAction.CREATED, "Ticket created by user", ctx.actor_id, now=now)
    ctx.store.create(TICKETS, ticket.model_dump(mode="json"))
    logger.info("Created ticket %s in building %s", ticket.id, ctx.building_id)
    return ticket


def get_ticket(ctx: WorkflowContext, ticket_id: str) -> Ticket:
    return ctx.load(TICKETS, ticket_id, Ticket)


def list_tickets(ctx: WorkflowContext, status: Optional[TicketStatus] = None) -> List[Ticket]:
    tickets = ctx.load_all(TICKETS, Ticket, status=status)
    return sorted(tickets, key=lambda ticket: ticket.created_at, reverse=True)


def transition_ticket(
    ctx: WorkflowContext, ticket_id: str, target_status: TicketStatus, note: Optional[str] = None
) -> Ticket:
    ticket = get_ticket(ctx, ticket_id)
    previous = ticket.status
    request_transition(ticket, target_status, ctx.actor_id, note=note, now=ctx.now())
    _persist(ctx, ticket, "status", "completed_date")

    if ticket.status == TicketStatus.COMPLETE:
        sync_ticket_events(ctx, ticket.id, EventStatus.COMPLETED)
    elif ticket.status == TicketStatus.CLOSED:
        sync_ticket_events(ctx, ticket.id, EventStatus.CANCELLED)

    _notify_requester(
        ctx,
        ticket,
        title=f"Ticket {ticket.status.value}",
        message=f'"{ticket.title}" moved from {previous.value} to {ticket.status.value}.',
    )
    return ticket


def add_quote(ctx: WorkflowContext, ticket_id: str, payload: QuoteCreate) -> Ticket:
    ticket = get_ticket(ctx, ticket_id)
    if ticket.status not in QUOTE_STATUSES:
        raise ValidationFailure(f"Quotes cannot be added while the ticket is {ticket.status.value}.")

    quote = Quote(
        supplier_id=payload.supplier_id,
        amount=payload.amount,
        currency=payload.currency or ctx.settings.currency,
        description=payload.description,
        terms=payload.terms,
        valid_until=payload.valid_until,
        attachments=list(payload.attachments),
        submitted_at=ctx.now(),
    )
    ticket.quotes = [*ticket.quotes, quote]
    append_activity(
        ticket,
        ActivityAction.QUOTE_ADDED,
        f"Quote of {quote.amount} {quote.currency} received from {quote.supplier_id}",
        ctx.actor_id,
        payload=QuotePayload(quote_id=quote.id, supplier_id=quote.supplier_id, amount=quote.amount),
        now=ctx.now(),
    )
    return _persist(ctx, ticket, "quotes")


def decide_quote(ctx: WorkflowContext, ticket_id: str, quote_id: str, status: QuoteStatus) -> Ticket:
    """Accept or decline a quote. Accepting one declines the other pending quotes."""
    ticket = get_ticket(ctx, ticket_id)
    status = QuoteStatus(status)
    if status not in {QuoteStatus.ACCEPTED, QuoteStatus.DECLINED}:
        raise ValidationFailure("Quotes can only be accepted or declined.")
    chosen = next((quote for quote in ticket.quotes if quote.id == quote_id), None)
    if chosen is None:
        raise RecordNotFound("quotes", quote_id)
    if chosen.status != QuoteStatus.PENDING:
        raise ValidationFailure(f"Quote {quote_id} is already {chosen.status.value}.")

    updated: List[Quote] = []
    for quote in ticket.quotes:
        if quote.id == quote_id:
            quote = quote.model_copy(update={"status": status})
        elif status == QuoteStatus.ACCEPTED and quote.status == QuoteStatus.PENDING:
            quote = quote.model_copy(update={"status": QuoteStatus.DECLINED})
        updated.append(quote)
    ticket.quotes = updated

    append_activity(
        ticket,
        ActivityAction.QUOTE_DECIDED,
        f"Quote from {chosen.supplier_id} {status.value}",
        ctx.actor_id,
        payload=QuotePayload(
            quote_id=chosen.id, supplier_id=chosen.supplier_id, amount=chosen.amount, status=status.value
        ),
        now=ctx.now(),
    )
    return _persist(ctx, ticket, "quotes")


def add_comment(ctx: WorkflowContext, ticket_id: str, payload: CommentCreate) -> Ticket:
    ticket = get_ticket(ctx, ticket_id)
    comment = TicketComment(author_id=ctx.actor_id, body=payload.body, created_at=ctx.now())
    ticket.comments = [*ticket.comments, comment]
    append_activity(
        ticket,
        ActivityAction.COMMENT_ADDED,
        "Comment added",
        ctx.actor_id,
        payload=CommentPayload(comment_id=comment.id),
        now=ctx.now(),
    )
    return _persist(ctx, ticket, "comments")


def submit_feedback(ctx: WorkflowContext, ticket_id: str, payload: FeedbackCreate) -> Ticket:
    ticket = get_ticket(ctx, ticket_id)
    if ticket.status not in FEEDBACK_STATUSES:
        raise ValidationFailure("Feedback can only be left once the ticket is complete.")
    if ticket.feedback is not None:
        raise ValidationFailure("Feedback has already been submitted for this ticket.")

    ticket.feedback = Feedback(
        rating=payload.rating,
        comment=payload.comment,
        submitted_by=ctx.actor_id,
        submitted_at=ctx.now(),
    )
    append_activity(
        ticket,
        ActivityAction.FEEDBACK_ADDED,
        f"Feedback submitted ({payload.rating}/5)",
        ctx.actor_id,
        payload=FeedbackPayload(rating=payload.rating, comment=payload.comment),
        now=ctx.now(),
    )
    return _persist(ctx, ticket, "feedback")


def schedule_ticket(ctx: WorkflowContext, ticket_id: str, scheduled_date: datetime) -> Ticket:
    ticket = get_ticket(ctx, ticket_id)
    if ticket.status in {TicketStatus.COMPLETE, TicketStatus.CLOSED}:
        raise ValidationFailure(f"Cannot schedule a ticket that is {ticket.status.value}.")

    rescheduled = ticket.scheduled_date is not None
    event = schedule_event_for_ticket(ctx, ticket, scheduled_date)
    ticket.scheduled_date = event.start_date
    append_activity(
        ticket,
        ActivityAction.SCHEDULED,
        f"Work {'rescheduled' if rescheduled else 'scheduled'} for {event.start_date:%d %b %Y %H:%M}",
        ctx.actor_id,
        payload=SchedulePayload(scheduled_date=event.start_date, event_id=event.id),
        now=ctx.now(),
    )
    _persist(ctx, ticket, "scheduled_date")
    _notify_requester(
        ctx,
        ticket,
        title="Work scheduled",
        message=f'Work on "{ticket.title}" is scheduled for {event.start_date:%d %b %Y %H:%M}.',
    )
    return ticket
