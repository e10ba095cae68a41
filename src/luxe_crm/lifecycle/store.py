"""Capability surface the lifecycle engine needs from a document store."""

from datetime import datetime
from typing import Any, Optional, Protocol


class DocumentStore(Protocol):
    """Create/read/update by id plus a created-since count.

    ``Repository`` is the SQLite implementation. Documents come back as
    the model dataclasses (``Estimate``, ``Job``, ``Invoice``).
    """

    def create(self, kind: str, fields: dict) -> int:
        """Persist a new document; the store assigns created_at."""
        ...

    def update(self, kind: str, doc_id: int, fields: dict) -> None:
        """Merge fields into a document; the store assigns updated_at."""
        ...

    def get(self, kind: str, doc_id: int) -> Optional[Any]:
        ...

    def count_created_since(self, kind: str, since: datetime) -> int:
        ...
