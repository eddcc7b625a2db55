from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, UniqueConstraint

from ..config import Base


def utcnow():
    return datetime.now(timezone.utc)


class Document(Base):
    """One record of the document store, keyed by (collection, id)."""

    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("collection", "id", name="uq_documents_collection_id"),)

    pk = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(64), nullable=False, index=True)
    id = Column(String(64), nullable=False, index=True)
    building_id = Column(String(64), nullable=True, index=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    kind = Column(String(32), nullable=False, default="info")
    building_id = Column(String(64), nullable=True, index=True)
    link_url = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    read_at = Column(DateTime, nullable=True, index=True)
