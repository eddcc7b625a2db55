from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.errors import PersistenceFailure, RecordNotFound
from ..models.models import Document

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class DocumentStore(Protocol):
    def get(self, collection: str, record_id: str) -> Optional[Record]: ...

    def list(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> List[Record]: ...

    def create(self, collection: str, record: Mapping[str, Any]) -> Record: ...

    def update(self, collection: str, record_id: str, partial: Mapping[str, Any]) -> Record: ...

    def delete(self, collection: str, record_id: str) -> None: ...


def _matches(data: Mapping[str, Any], filters: Mapping[str, Any]) -> bool:
    for key, expected in filters.items():
        value = data.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class SqlDocumentStore:
    """Document store backed by the ``documents`` table.

    Records are JSON-compatible dicts (``model_dump(mode="json")``). Every
    write commits before returning, so a partial update of status, activity
    log and timestamps lands in a single call. Database errors surface as
    ``PersistenceFailure`` after the session is rolled back.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def _find(self, collection: str, record_id: str) -> Optional[Document]:
        try:
            return (
                self.session.query(Document)
                .filter(Document.collection == collection, Document.id == record_id)
                .one_or_none()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Document store read failed for %s/%s: %s", collection, record_id, exc)
            raise PersistenceFailure(f"Could not read {collection} record.") from exc

    def _commit(self, action: str, collection: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Document store %s failed for %s: %s", action, collection, exc)
            raise PersistenceFailure(f"Could not {action} {collection} record.") from exc

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        document = self._find(collection, record_id)
        if document is None:
            return None
        return dict(document.data)

    def list(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> List[Record]:
        filters = dict(filters or {})
        query = self.session.query(Document).filter(Document.collection == collection)
        building_id = filters.pop("building_id", None)
        if building_id is not None:
            query = query.filter(Document.building_id == building_id)
        try:
            documents = query.order_by(Document.created_at.asc(), Document.pk.asc()).all()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceFailure(f"Could not list {collection} records.") from exc
        return [dict(document.data) for document in documents if _matches(document.data, filters)]

    def create(self, collection: str, record: Mapping[str, Any]) -> Record:
        data = dict(record)
        data.setdefault("id", uuid.uuid4().hex)
        document = Document(
            collection=collection,
            id=data["id"],
            building_id=data.get("building_id"),
            data=data,
        )
        self.session.add(document)
        self._commit("create", collection)
        logger.debug("Created %s/%s", collection, data["id"])
        return dict(data)

    def update(self, collection: str, record_id: str, partial: Mapping[str, Any]) -> Record:
        document = self._find(collection, record_id)
        if document is None:
            raise RecordNotFound(collection, record_id)
        # JSON columns only flag changes on reassignment
        document.data = {**document.data, **dict(partial)}
        document.updated_at = datetime.now(timezone.utc)
        self.session.add(document)
        self._commit("update", collection)
        return dict(document.data)

    def delete(self, collection: str, record_id: str) -> None:
        document = self._find(collection, record_id)
        if document is None:
            raise RecordNotFound(collection, record_id)
        self.session.delete(document)
        self._commit("delete", collection)
        logger.debug("Deleted %s/%s", collection, record_id)
