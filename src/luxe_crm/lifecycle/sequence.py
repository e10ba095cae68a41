"""Daily sequential reference numbers: ``PREFIX-YYYYMMDD-NNN``.

The sequence is the number of documents of the same kind created since
the start of the day, plus one. Counting is not atomic with the insert
that follows, so ``reserve()`` holds a per-(database, kind, day) lock for
the duration of the insert. Every allocator on the same database file
shares that lock, which serializes writers inside one process only;
two processes sharing a database can still hand out the same number.
"""

import logging
import re
import threading
from contextlib import contextmanager
from datetime import date, datetime, time
from pathlib import Path
from typing import Optional

from luxe_crm.config import Config
from luxe_crm.lifecycle.errors import AllocationFailure
from luxe_crm.lifecycle.store import DocumentStore

logger = logging.getLogger(__name__)

_REFERENCE_RE = re.compile(r"^([A-Z]+)-(\d{8})-(\d{3,})$")


def format_reference(prefix: str, day: date, sequence: int) -> str:
    return f"{prefix}-{day:%Y%m%d}-{sequence:03d}"


def kind_for_reference(reference: str) -> Optional[str]:
    """Map a reference number back to its document kind, if recognised."""
    match = _REFERENCE_RE.match(reference.strip().upper())
    if not match:
        return None
    for kind in ("estimate", "job", "invoice"):
        if Config.prefix_for(kind) == match.group(1):
            return kind
    return None


def _as_day(today) -> date:
    if isinstance(today, datetime):
        return today.date()
    if isinstance(today, date):
        return today
    raise AllocationFailure(f"Expected a date, got {today!r}")


# Per-(store, kind, day) locks shared by every allocator in the process
_LOCKS: dict[tuple, threading.Lock] = {}
_REGISTRY_LOCK = threading.Lock()


def _store_scope(store):
    """Identify the database behind a store so allocators on it share locks."""
    db_path = getattr(getattr(store, "db", None), "db_path", None)
    if isinstance(db_path, Path):
        return str(db_path.resolve())
    return id(store)


class SequenceAllocator:
    """Allocates reference numbers by counting today's documents."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.scope = _store_scope(store)

    def allocate(self, kind: str, today) -> str:
        """Return the next reference number for ``kind`` on ``today``.

        Raises AllocationFailure if the kind is unknown or the count
        query fails.
        """
        try:
            prefix = Config.prefix_for(kind)
        except KeyError:
            raise AllocationFailure(f"Unknown document kind: {kind}") from None

        day = _as_day(today)
        since = datetime.combine(day, time.min)
        try:
            count = self.store.count_created_since(kind, since)
        except Exception as e:
            logger.error(f"Count query failed for {kind} on {day}: {e}")
            raise AllocationFailure(
                f"Could not count {kind} documents for {day:%Y-%m-%d}"
            ) from e

        number = format_reference(prefix, day, count + 1)
        logger.debug(f"Allocated {number} ({count} {kind}s earlier today)")
        return number

    @contextmanager
    def reserve(self, kind: str, today):
        """Allocate a number and hold the (kind, day) lock until exit.

        The caller persists the numbered document inside the ``with``
        block so no other thread in this process can count in between.
        The lock is shared by every allocator on the same database file.
        """
        lock = self._lock_for(kind, _as_day(today))
        with lock:
            yield self.allocate(kind, today)

    def _lock_for(self, kind: str, day: date) -> threading.Lock:
        with _REGISTRY_LOCK:
            # Drop locks left over from previous days
            for key in [k for k in _LOCKS if k[2] != day]:
                if not _LOCKS[key].locked():
                    del _LOCKS[key]
            return _LOCKS.setdefault((self.scope, kind, day), threading.Lock())
