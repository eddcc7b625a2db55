from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from ..constants import (
    WORK_ORDERS,
    ActivityAction,
    NotificationKind,
    QuoteRequestStatus,
    WorkOrderStatus,
)
from ..core.errors import RecordNotFound, ValidationFailure
from ..schemas.schemas import (
    FeedbackPayload,
    NotePayload,
    QuotePayload,
    QuoteRequest,
    QuoteRequestCreate,
    QuoteRequestUpdate,
    ResolutionNoteCreate,
    SchedulePayload,
    UserFeedback,
    UserFeedbackCreate,
    WorkOrder,
    WorkOrderCreate,
)
from .context import WorkflowContext
from .workflow import append_activity, request_transition

logger = logging.getLogger(__name__)

WORK_ORDER_LINK = "/work-orders/{work_order_id}"
OPEN_QUOTE_STATUSES = {WorkOrderStatus.TRIAGE, WorkOrderStatus.QUOTING}


def _persist(ctx: WorkflowContext, work_order: WorkOrder, *fields: str) -> WorkOrder:
    include = {"activity_log", "updated_at", *fields}
    ctx.store.update(WORK_ORDERS, work_order.id, work_order.model_dump(mode="json", include=include))
    return work_order


def create_work_order(ctx: WorkflowContext, payload: WorkOrderCreate) -> WorkOrder:
    now = ctx.now()
    work_order = WorkOrder(
        building_id=ctx.building_id,
        flat_id=payload.flat_id,
        ticket_id=payload.ticket_id,
        title=payload.title,
        description=payload.description,
        priority=payload.priority,
        created_by=ctx.actor_id,
        created_at=now,
        updated_at=now,
    )
    append_activity(work_order, ActivityAction.CREATED, "Work order raised", ctx.actor_id, now=now)
    ctx.store.create(WORK_ORDERS, work_order.model_dump(mode="json"))
    logger.info("Created work order %s in building %s", work_order.id, ctx.building_id)
    return work_order


def get_work_order(ctx: WorkflowContext, work_order_id: str) -> WorkOrder:
    return ctx.load(WORK_ORDERS, work_order_id, WorkOrder)


def list_work_orders(ctx: WorkflowContext, status: Optional[WorkOrderStatus] = None) -> List[WorkOrder]:
    work_orders = ctx.load_all(WORK_ORDERS, WorkOrder, status=status)
    return sorted(work_orders, key=lambda work_order: work_order.created_at, reverse=True)


def transition_work_order(
    ctx: WorkflowContext, work_order_id: str, target_status: WorkOrderStatus, note: Optional[str] = None
) -> WorkOrder:
    work_order = get_work_order(ctx, work_order_id)
    request_transition(work_order, target_status, ctx.actor_id, note=note, now=ctx.now())
    _persist(ctx, work_order, "status", "resolved_at")

    if work_order.created_by != ctx.actor_id:
        ctx.notifier.notify(
            work_order.created_by,
            title=f"Work order {work_order.status.value}",
            message=f'"{work_order.title}" is now {work_order.status.value}.',
            kind=NotificationKind.INFO,
            link_url=WORK_ORDER_LINK.format(work_order_id=work_order.id),
        )
    return work_order


def request_quote(ctx: WorkflowContext, work_order_id: str, payload: QuoteRequestCreate) -> WorkOrder:
    """Ask a supplier to quote. The first request moves a triaged order into Quoting."""
    work_order = get_work_order(ctx, work_order_id)
    if work_order.status not in OPEN_QUOTE_STATUSES:
        raise ValidationFailure(f"Quotes cannot be requested while the work order is {work_order.status.value}.")
    if any(
        existing.supplier_id == payload.supplier_id and existing.status == QuoteRequestStatus.PENDING
        for existing in work_order.quote_requests
    ):
        raise ValidationFailure(f"A quote from {payload.supplier_name} is already pending.")

    now = ctx.now()
    quote_request = QuoteRequest(
        supplier_id=payload.supplier_id,
        supplier_name=payload.supplier_name,
        notes=payload.notes,
        sent_at=now,
    )
    work_order.quote_requests = [*work_order.quote_requests, quote_request]
    if work_order.status == WorkOrderStatus.TRIAGE:
        request_transition(work_order, WorkOrderStatus.QUOTING, ctx.actor_id, note="Quote requested", now=now)
    append_activity(
        work_order,
        ActivityAction.QUOTE_ADDED,
        f"Quote requested from {payload.supplier_name}",
        ctx.actor_id,
        payload=QuotePayload(quote_id=payload.supplier_id, supplier_id=payload.supplier_id),
        now=now,
    )
    return _persist(ctx, work_order, "status", "quote_requests")


def update_quote_request(
    ctx: WorkflowContext, work_order_id: str, supplier_id: str, payload: QuoteRequestUpdate
) -> WorkOrder:
    work_order = get_work_order(ctx, work_order_id)
    if not any(request.supplier_id == supplier_id for request in work_order.quote_requests):
        raise RecordNotFound("quoteRequests", supplier_id)

    now = ctx.now()
    updated: List[QuoteRequest] = []
    for request in work_order.quote_requests:
        if request.supplier_id == supplier_id:
            request = request.model_copy(
                update={
                    "status": payload.status,
                    "quote_amount": payload.quote_amount
                    if payload.quote_amount is not None
                    else request.quote_amount,
                    "quote_document": payload.quote_document or request.quote_document,
                    "updated_at": now,
                }
            )
        updated.append(request)
    work_order.quote_requests = updated

    append_activity(
        work_order,
        ActivityAction.QUOTE_DECIDED,
        f"Quote from {supplier_id} marked {payload.status.value}",
        ctx.actor_id,
        payload=QuotePayload(
            quote_id=supplier_id,
            supplier_id=supplier_id,
            amount=payload.quote_amount,
            status=payload.status.value,
        ),
        now=now,
    )
    return _persist(ctx, work_order, "quote_requests")


def schedule_work_order(
    ctx: WorkflowContext,
    work_order_id: str,
    scheduled_date: datetime,
    supplier_id: Optional[str] = None,
    supplier_name: Optional[str] = None,
) -> WorkOrder:
    """Book the work and move the order to Scheduled (only reachable from Awaiting User Feedback)."""
    work_order = get_work_order(ctx, work_order_id)
    now = ctx.now()
    request_transition(work_order, WorkOrderStatus.SCHEDULED, ctx.actor_id, note="Work booked", now=now)
    work_order.scheduled_date = scheduled_date
    if supplier_id:
        work_order.supplier_id = supplier_id
        work_order.supplier_name = supplier_name or work_order.supplier_name
    append_activity(
        work_order,
        ActivityAction.SCHEDULED,
        f"Work scheduled for {scheduled_date:%d %b %Y %H:%M}",
        ctx.actor_id,
        payload=SchedulePayload(scheduled_date=scheduled_date, supplier_id=work_order.supplier_id),
        now=now,
    )
    return _persist(ctx, work_order, "status", "scheduled_date", "supplier_id", "supplier_name")


def add_user_feedback(ctx: WorkflowContext, work_order_id: str, payload: UserFeedbackCreate) -> WorkOrder:
    work_order = get_work_order(ctx, work_order_id)
    if payload.rating is None and not payload.comment:
        raise ValidationFailure("Feedback needs a rating or a comment.")

    work_order.user_feedback = UserFeedback(
        rating=payload.rating,
        comment=payload.comment,
        user_id=ctx.actor_id,
        submitted_at=ctx.now(),
    )
    append_activity(
        work_order,
        ActivityAction.FEEDBACK_ADDED,
        "User feedback received",
        ctx.actor_id,
        payload=FeedbackPayload(rating=payload.rating, comment=payload.comment),
        now=ctx.now(),
    )
    return _persist(ctx, work_order, "user_feedback")


def add_resolution_note(ctx: WorkflowContext, work_order_id: str, payload: ResolutionNoteCreate) -> WorkOrder:
    work_order = get_work_order(ctx, work_order_id)
    if work_order.resolution_notes:
        work_order.resolution_notes = f"{work_order.resolution_notes}\n{payload.note}"
    else:
        work_order.resolution_notes = payload.note
    if payload.cost is not None:
        work_order.cost = payload.cost
    append_activity(
        work_order,
        ActivityAction.NOTE_ADDED,
        payload.note,
        ctx.actor_id,
        payload=NotePayload(cost=payload.cost),
        now=ctx.now(),
    )
    return _persist(ctx, work_order, "resolution_notes", "cost")
