"""
SQLAlchemy ORM models and shared enums.

Models:
    base: Base declarative class and shared enums (Destination,
          ProcessingStatus, DetailStatus)
    document: StoredDocument, one row per document address

Database Schema:
    The document store is a single ``documents`` table keyed by the full
    document path (``collection/doc/collection/doc``). Payloads are JSONB on
    Postgres (live store) and JSON on SQLite (emulator).

Usage:
    from models.base import Base, Destination, ProcessingStatus
    from models.document import StoredDocument

Example:
    stmt = select(StoredDocument).where(
        StoredDocument.collection_path == "congressoNacional/senadoFederal/perfis"
    )
    docs = (await session.execute(stmt)).scalars().all()
"""

__all__ = [
    "Base",
    "Destination",
    "ProcessingStatus",
    "DetailStatus",
    "StoredDocument",
]
