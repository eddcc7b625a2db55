from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ..api.dependencies import get_context
from ..schemas.schemas import (
    BuildingEvent,
    BuildingEventRead,
    EventCreate,
    EventTransitionRequest,
    EventUpdate,
)
from ..services import events as event_service
from ..services.context import WorkflowContext
from ..services.workflow import available_actions

router = APIRouter()


def _serialize_event(event: BuildingEvent) -> BuildingEventRead:
    return BuildingEventRead(**event.model_dump(), available_actions=available_actions(event.status))


@router.get("/", response_model=List[BuildingEventRead])
def list_events(
    ticket_id: Optional[str] = Query(default=None),
    ctx: WorkflowContext = Depends(get_context),
) -> List[BuildingEventRead]:
    return [_serialize_event(event) for event in event_service.list_events(ctx, ticket_id=ticket_id)]


@router.post("/", response_model=BuildingEventRead, status_code=status.HTTP_201_CREATED)
def create_event(payload: EventCreate, ctx: WorkflowContext = Depends(get_context)) -> BuildingEventRead:
    return _serialize_event(event_service.create_event(ctx, payload))


@router.get("/{event_id}", response_model=BuildingEventRead)
def get_event(event_id: str, ctx: WorkflowContext = Depends(get_context)) -> BuildingEventRead:
    return _serialize_event(event_service.get_event(ctx, event_id))


@router.patch("/{event_id}", response_model=BuildingEventRead)
def update_event(
    event_id: str, payload: EventUpdate, ctx: WorkflowContext = Depends(get_context)
) -> BuildingEventRead:
    return _serialize_event(event_service.update_event(ctx, event_id, payload))


@router.post("/{event_id}/transition", response_model=BuildingEventRead)
def transition_event(
    event_id: str,
    payload: EventTransitionRequest,
    ctx: WorkflowContext = Depends(get_context),
) -> BuildingEventRead:
    event = event_service.transition_event(ctx, event_id, payload.target_status, note=payload.note)
    return _serialize_event(event)


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(event_id: str, ctx: WorkflowContext = Depends(get_context)) -> Response:
    event_service.delete_event(ctx, event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
