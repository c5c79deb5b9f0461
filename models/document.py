from sqlalchemy import Column, String, DateTime, JSON, Index
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime, timezone
from models.base import Base


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class StoredDocument(Base):
    """
    One document in the SQL-backed document store.

    The full slash-delimited path is the primary key, so writing the same
    address twice overwrites the payload instead of adding a row.

    Design Decisions:
    - JSONB on Postgres, plain JSON elsewhere (the SQLite emulator)
    - collection_path is indexed for listing a collection
    """
    __tablename__ = "documents"

    path = Column(String(1024), primary_key=True)
    collection_path = Column(String(1024), nullable=False)
    document_id = Column(String(255), nullable=False)

    payload = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)

    updated_at = Column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("idx_documents_collection", "collection_path"),
    )

    def __repr__(self):
        return f"<StoredDocument(path={self.path})>"
