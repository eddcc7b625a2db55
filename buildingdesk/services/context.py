from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Type, TypeVar

from pydantic import BaseModel

from ..config import Settings, get_settings
from ..core.errors import RecordNotFound
from .notifications import NotificationSink
from .store import DocumentStore

ModelT = TypeVar("ModelT", bound=BaseModel)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class WorkflowContext:
    """Everything a workflow call needs, passed explicitly by the caller."""

    building_id: str
    actor_id: str
    store: DocumentStore
    notifier: NotificationSink
    clock: Callable[[], datetime] = utcnow
    settings: Settings = field(default_factory=get_settings)

    def now(self) -> datetime:
        return self.clock()

    def load(self, collection: str, record_id: str, model: Type[ModelT]) -> ModelT:
        """Fetch a record owned by this building and validate it into ``model``."""
        data = self.store.get(collection, record_id)
        if data is None or data.get("building_id") != self.building_id:
            raise RecordNotFound(collection, record_id)
        return model.model_validate(data)

    def load_all(self, collection: str, model: Type[ModelT], **filters: Any) -> list[ModelT]:
        query: Dict[str, Any] = {"building_id": self.building_id}
        query.update({key: value for key, value in filters.items() if value is not None})
        return [model.model_validate(data) for data in self.store.list(collection, query)]
