from typing import List, Literal

from fastapi import APIRouter, Query

from ..constants import EventStatus, TicketStatus, WorkOrderStatus
from ..core.errors import ValidationFailure
from ..schemas.schemas import WorkflowAction
from ..services.workflow import available_actions

router = APIRouter()

STATUS_TYPES = {
    "ticket": TicketStatus,
    "work-order": WorkOrderStatus,
    "event": EventStatus,
}


@router.get("/actions", response_model=List[WorkflowAction])
def list_actions(
    kind: Literal["ticket", "work-order", "event"] = Query(...),
    status: str = Query(...),
) -> List[WorkflowAction]:
    try:
        current = STATUS_TYPES[kind](status)
    except ValueError as exc:
        raise ValidationFailure(f"Unknown {kind} status: {status}") from exc
    return available_actions(current)
