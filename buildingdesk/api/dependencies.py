from typing import Generator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from ..config import SessionLocal, get_settings
from ..services.context import WorkflowContext
from ..services.notifications import SqlNotificationSink
from ..services.store import SqlDocumentStore

BUILDING_HEADER = "X-Building-Id"
USER_HEADER = "X-User-Id"


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor_id(x_user_id: str = Header(default="", alias=USER_HEADER)) -> str:
    if not x_user_id.strip():
        raise HTTPException(status_code=400, detail=f"{USER_HEADER} header is required.")
    return x_user_id.strip()


def get_building_id(x_building_id: str = Header(default="", alias=BUILDING_HEADER)) -> str:
    if not x_building_id.strip():
        raise HTTPException(status_code=400, detail=f"{BUILDING_HEADER} header is required.")
    return x_building_id.strip()


def get_context(
    db: Session = Depends(get_db),
    building_id: str = Depends(get_building_id),
    actor_id: str = Depends(get_actor_id),
) -> WorkflowContext:
    return WorkflowContext(
        building_id=building_id,
        actor_id=actor_id,
        store=SqlDocumentStore(db),
        notifier=SqlNotificationSink(db, building_id=building_id),
        settings=get_settings(),
    )
