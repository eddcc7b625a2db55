from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ..api.dependencies import get_context
from ..constants import WorkOrderStatus
from ..schemas.schemas import (
    QuoteRequestCreate,
    QuoteRequestUpdate,
    ResolutionNoteCreate,
    ScheduleRequest,
    UserFeedbackCreate,
    WorkOrder,
    WorkOrderCreate,
    WorkOrderRead,
    WorkOrderTransitionRequest,
)
from ..services import work_orders as work_order_service
from ..services.context import WorkflowContext
from ..services.workflow import available_actions

router = APIRouter()


def _serialize_work_order(work_order: WorkOrder) -> WorkOrderRead:
    return WorkOrderRead(**work_order.model_dump(), available_actions=available_actions(work_order.status))


@router.get("/", response_model=List[WorkOrderRead])
def list_work_orders(
    status_filter: Optional[WorkOrderStatus] = Query(default=None, alias="status"),
    ctx: WorkflowContext = Depends(get_context),
) -> List[WorkOrderRead]:
    work_orders = work_order_service.list_work_orders(ctx, status=status_filter)
    return [_serialize_work_order(work_order) for work_order in work_orders]


@router.post("/", response_model=WorkOrderRead, status_code=status.HTTP_201_CREATED)
def create_work_order(payload: WorkOrderCreate, ctx: WorkflowContext = Depends(get_context)) -> WorkOrderRead:
    return _serialize_work_order(work_order_service.create_work_order(ctx, payload))


@router.get("/{work_order_id}", response_model=WorkOrderRead)
def get_work_order(work_order_id: str, ctx: WorkflowContext = Depends(get_context)) -> WorkOrderRead:
    return _serialize_work_order(work_order_service.get_work_order(ctx, work_order_id))


@router.post("/{work_order_id}/transition", response_model=WorkOrderRead)
def transition_work_order(
    work_order_id: str,
    payload: WorkOrderTransitionRequest,
    ctx: WorkflowContext = Depends(get_context),
) -> WorkOrderRead:
    work_order = work_order_service.transition_work_order(
        ctx, work_order_id, payload.target_status, note=payload.note
    )
    return _serialize_work_order(work_order)


@router.post("/{work_order_id}/quote-requests", response_model=WorkOrderRead, status_code=status.HTTP_201_CREATED)
def request_quote(
    work_order_id: str,
    payload: QuoteRequestCreate,
    ctx: WorkflowContext = Depends(get_context),
) -> WorkOrderRead:
    return _serialize_work_order(work_order_service.request_quote(ctx, work_order_id, payload))


@router.patch("/{work_order_id}/quote-requests/{supplier_id}", response_model=WorkOrderRead)
def update_quote_request(
    work_order_id: str,
    supplier_id: str,
    payload: QuoteRequestUpdate,
    ctx: WorkflowContext = Depends(get_context),
) -> WorkOrderRead:
    work_order = work_order_service.update_quote_request(ctx, work_order_id, supplier_id, payload)
    return _serialize_work_order(work_order)


@router.post("/{work_order_id}/schedule", response_model=WorkOrderRead)
def schedule_work_order(
    work_order_id: str,
    payload: ScheduleRequest,
    ctx: WorkflowContext = Depends(get_context),
) -> WorkOrderRead:
    work_order = work_order_service.schedule_work_order(
        ctx,
        work_order_id,
        payload.scheduled_date,
        supplier_id=payload.supplier_id,
        supplier_name=payload.supplier_name,
    )
    return _serialize_work_order(work_order)


@router.post("/{work_order_id}/feedback", response_model=WorkOrderRead)
def add_user_feedback(
    work_order_id: str,
    payload: UserFeedbackCreate,
    ctx: WorkflowContext = Depends(get_context),
) -> WorkOrderRead:
    return _serialize_work_order(work_order_service.add_user_feedback(ctx, work_order_id, payload))


@router.post("/{work_order_id}/notes", response_model=WorkOrderRead)
def add_resolution_note(
    work_order_id: str,
    payload: ResolutionNoteCreate,
    ctx: WorkflowContext = Depends(get_context),
) -> WorkOrderRead:
    return _serialize_work_order(work_order_service.add_resolution_note(ctx, work_order_id, payload))
