from datetime import datetime, timezone
from decimal import Decimal

import pytest

from buildingdesk.constants import (
    WORK_ORDERS,
    ActivityAction,
    QuoteRequestStatus,
    WorkOrderStatus,
)
from buildingdesk.core.errors import InvalidTransition, RecordNotFound, ValidationFailure
from buildingdesk.models.models import Notification
from buildingdesk.schemas.schemas import (
    QuoteRequestCreate,
    QuoteRequestUpdate,
    ResolutionNoteCreate,
    UserFeedbackCreate,
    WorkOrderCreate,
)
from buildingdesk.services import work_orders as work_order_service

SLOT = datetime(2024, 3, 13, 9, 30, tzinfo=timezone.utc)


def _raise_work_order(ctx):
    return work_order_service.create_work_order(
        ctx, WorkOrderCreate(title="Replace lift door sensor", description="Door reopens constantly")
    )


def test_create_work_order_starts_in_triage(ctx, store):
    work_order = _raise_work_order(ctx)

    assert work_order.status == WorkOrderStatus.TRIAGE
    assert work_order.activity_log[0].action == ActivityAction.CREATED
    assert store.get(WORK_ORDERS, work_order.id)["status"] == "Triage"


def test_first_quote_request_moves_order_to_quoting(ctx):
    work_order = _raise_work_order(ctx)

    work_order = work_order_service.request_quote(
        ctx, work_order.id, QuoteRequestCreate(supplier_id="lift-co", supplier_name="Lift Co")
    )

    assert work_order.status == WorkOrderStatus.QUOTING
    assert [request.supplier_id for request in work_order.quote_requests] == ["lift-co"]
    assert [entry.action for entry in work_order.activity_log] == [
        ActivityAction.CREATED,
        ActivityAction.STATUS_CHANGED,
        ActivityAction.QUOTE_ADDED,
    ]
    reloaded = work_order_service.get_work_order(ctx, work_order.id)
    assert reloaded.status == WorkOrderStatus.QUOTING
    assert len(reloaded.quote_requests) == 1


def test_duplicate_pending_quote_request_is_rejected(ctx):
    work_order = _raise_work_order(ctx)
    request = QuoteRequestCreate(supplier_id="lift-co", supplier_name="Lift Co")
    work_order_service.request_quote(ctx, work_order.id, request)

    with pytest.raises(ValidationFailure):
        work_order_service.request_quote(ctx, work_order.id, request)


def test_update_quote_request_records_amount(ctx):
    work_order = _raise_work_order(ctx)
    work_order_service.request_quote(
        ctx, work_order.id, QuoteRequestCreate(supplier_id="lift-co", supplier_name="Lift Co")
    )

    work_order = work_order_service.update_quote_request(
        ctx,
        work_order.id,
        "lift-co",
        QuoteRequestUpdate(status=QuoteRequestStatus.RECEIVED, quote_amount=Decimal("640.00")),
    )

    request = work_order.quote_requests[0]
    assert request.status == QuoteRequestStatus.RECEIVED
    assert request.quote_amount == Decimal("640.00")
    assert work_order.activity_log[-1].payload.amount == Decimal("640.00")
    with pytest.raises(RecordNotFound):
        work_order_service.update_quote_request(
            ctx, work_order.id, "unknown", QuoteRequestUpdate(status=QuoteRequestStatus.REJECTED)
        )


def test_schedule_requires_awaiting_user_feedback(ctx):
    work_order = _raise_work_order(ctx)

    with pytest.raises(InvalidTransition):
        work_order_service.schedule_work_order(ctx, work_order.id, SLOT)

    work_order_service.transition_work_order(ctx, work_order.id, WorkOrderStatus.QUOTING)
    work_order_service.transition_work_order(ctx, work_order.id, WorkOrderStatus.AWAITING_USER_FEEDBACK)
    work_order = work_order_service.schedule_work_order(
        ctx, work_order.id, SLOT, supplier_id="lift-co", supplier_name="Lift Co"
    )

    assert work_order.status == WorkOrderStatus.SCHEDULED
    assert work_order.scheduled_date == SLOT
    assert work_order.supplier_name == "Lift Co"
    assert work_order.activity_log[-1].action == ActivityAction.SCHEDULED


def test_scheduled_work_order_can_be_cancelled(ctx):
    work_order = _raise_work_order(ctx)
    for status in (WorkOrderStatus.QUOTING, WorkOrderStatus.AWAITING_USER_FEEDBACK, WorkOrderStatus.SCHEDULED):
        work_order_service.transition_work_order(ctx, work_order.id, status)

    work_order = work_order_service.transition_work_order(ctx, work_order.id, WorkOrderStatus.CANCELLED)

    assert work_order.status == WorkOrderStatus.CANCELLED
    assert work_order.activity_log[-1].payload.previous_status == "Scheduled"
    with pytest.raises(InvalidTransition):
        work_order_service.transition_work_order(ctx, work_order.id, WorkOrderStatus.SCHEDULED)


def test_transition_notifies_creator_when_someone_else_acts(ctx, resident_ctx, db_session):
    work_order = _raise_work_order(ctx)

    work_order_service.transition_work_order(resident_ctx, work_order.id, WorkOrderStatus.QUOTING)

    notification = db_session.query(Notification).filter(Notification.user_id == "manager-1").one()
    assert notification.link_url == f"/work-orders/{work_order.id}"


def test_user_feedback_needs_rating_or_comment(ctx, resident_ctx):
    work_order = _raise_work_order(ctx)

    with pytest.raises(ValidationFailure):
        work_order_service.add_user_feedback(resident_ctx, work_order.id, UserFeedbackCreate())

    work_order = work_order_service.add_user_feedback(
        resident_ctx, work_order.id, UserFeedbackCreate(comment="Mornings are best")
    )
    assert work_order.user_feedback.user_id == "resident-1"


def test_resolution_notes_accumulate_and_set_cost(ctx):
    work_order = _raise_work_order(ctx)

    work_order_service.add_resolution_note(ctx, work_order.id, ResolutionNoteCreate(note="Sensor replaced"))
    work_order = work_order_service.add_resolution_note(
        ctx, work_order.id, ResolutionNoteCreate(note="Door tested", cost=Decimal("640.00"))
    )

    assert work_order.resolution_notes == "Sensor replaced\nDoor tested"
    assert work_order.cost == Decimal("640.00")
    stored = work_order_service.get_work_order(ctx, work_order.id)
    assert stored.resolution_notes == "Sensor replaced\nDoor tested"
