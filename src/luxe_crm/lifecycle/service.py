"""Status changes as the admin screens perform them.

Saving a new status and running its side effects are separate steps:
the status write commits first, then the orchestrator runs. A failed
derivation is reported through the outcome and an error notification,
never by failing the status save.
"""

import logging
import sqlite3
from dataclasses import dataclass
from typing import Optional

from luxe_crm.database.models import Notification
from luxe_crm.database.repository import Repository
from luxe_crm.lifecycle.errors import SourceNotFound
from luxe_crm.lifecycle.orchestrator import (
    CREATED,
    FAILED,
    LifecycleOrchestrator,
    TransitionOutcome,
)
from luxe_crm.utils.constants import REFERENCE_FIELDS, STATUSES_BY_KIND

logger = logging.getLogger(__name__)


@dataclass
class StatusChangeResult:
    kind: str
    doc_id: int
    previous_status: str
    new_status: str
    status_saved: bool
    outcome: TransitionOutcome

    @property
    def derivation_failed(self) -> bool:
        return not self.outcome.ok


class StatusService:
    """Persists status changes and hands them to the orchestrator."""

    def __init__(self, repo: Repository,
                 orchestrator: Optional[LifecycleOrchestrator] = None):
        self.repo = repo
        self.orchestrator = orchestrator or LifecycleOrchestrator(
            repo, allocator=repo.allocator, clock=repo.clock,
        )

    def change_status(self, kind: str, doc_id: int,
                      new_status: str) -> StatusChangeResult:
        """Save ``new_status`` on a document and run triggered derivations.

        Raises ValueError for an unknown kind or status and
        SourceNotFound if the document does not exist. Anything that goes
        wrong after the status is saved is in ``result.outcome``.
        """
        statuses = STATUSES_BY_KIND.get(kind)
        if statuses is None:
            raise ValueError(f"Unknown document kind: {kind}")
        if new_status not in statuses:
            raise ValueError(f"Unknown {kind} status: {new_status}")

        doc = self.repo.get(kind, doc_id)
        if doc is None:
            raise SourceNotFound(kind, doc_id)
        previous_status = doc.status

        if previous_status != new_status:
            self.repo.update(kind, doc_id, {"status": new_status})
            logger.info(f"{kind} {self._number(kind, doc)}: "
                        f"{previous_status} -> {new_status}")

        outcome = self.orchestrator.on_status_change(
            kind, doc_id, previous_status, new_status,
        )
        try:
            self._notify(kind, doc, outcome)
        except sqlite3.Error as e:
            logger.error(f"Could not record notifications for {kind} {doc_id}: {e}")
        return StatusChangeResult(
            kind, doc_id, previous_status, new_status,
            status_saved=True, outcome=outcome,
        )

    @staticmethod
    def _number(kind: str, doc) -> str:
        return getattr(doc, REFERENCE_FIELDS.get(kind, "id"), "") or str(doc.id)

    def _notify(self, kind: str, doc, outcome: TransitionOutcome):
        number = self._number(kind, doc)
        for result in outcome.results:
            if result.state == CREATED:
                self.repo.create_notification(Notification(
                    title=f"{result.derived_kind.title()} "
                          f"{result.reference_number} created",
                    message=f"Created automatically when {kind} {number} "
                            f"became {outcome.new_status}.",
                    severity="info",
                    source="lifecycle",
                    target_kind=result.derived_kind,
                    target_id=result.derived_id,
                ))
            elif result.state == FAILED:
                self.repo.create_notification(Notification(
                    title=f"Automatic follow-up failed for {kind} {number}",
                    message=(
                        f"The status change to {outcome.new_status} was "
                        f"saved, but {result.action} failed: {result.message}"
                    ),
                    severity="error",
                    source="lifecycle",
                    target_kind=kind,
                    target_id=doc.id,
                ))
