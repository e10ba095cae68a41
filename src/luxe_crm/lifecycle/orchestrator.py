"""Lifecycle orchestrator: status-driven side effects for estimates and jobs.

Each row of ``TRANSITIONS`` names a document kind, the status whose entry
triggers it, the guard flag that stops it from repeating (if any) and the
orchestrator method that performs it. A row fires only on a transition
*into* its status, never on a re-save while the status is unchanged.

A derivation writes twice: the new document, then the guard flag on the
source. The writes are not atomic. If the flag write fails (or the
process dies in between) the next qualifying transition derives again,
so delivery is at-least-once.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from luxe_crm.lifecycle.derivation import derive_invoice, derive_job
from luxe_crm.lifecycle.errors import (
    DerivationSkipped,
    LifecycleError,
    PersistFailure,
    SourceNotFound,
)
from luxe_crm.lifecycle.sequence import SequenceAllocator
from luxe_crm.lifecycle.store import DocumentStore
from luxe_crm.utils.constants import (
    ESTIMATE_ACCEPTED,
    JOB_COMPLETED,
    REFERENCE_FIELDS,
)

logger = logging.getLogger(__name__)

# Result states
CREATED = "created"
APPLIED = "applied"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass(frozen=True)
class Transition:
    kind: str
    into_status: str
    action: str
    guard_flag: Optional[str] = None

    def matches(self, kind: str, previous_status: str,
                new_status: str) -> bool:
        return (
            kind == self.kind
            and new_status == self.into_status
            and previous_status != self.into_status
        )


TRANSITIONS = [
    Transition("estimate", ESTIMATE_ACCEPTED, "derive_job_from_estimate",
               guard_flag="job_created"),
    Transition("job", JOB_COMPLETED, "stamp_completion_date"),
    Transition("job", JOB_COMPLETED, "derive_invoice_from_job",
               guard_flag="invoice_created"),
]


@dataclass
class DerivationResult:
    action: str
    state: str
    derived_kind: str = ""
    derived_id: Optional[int] = None
    reference_number: str = ""
    error: Optional[LifecycleError] = None

    @property
    def message(self) -> str:
        if self.error is not None:
            return str(self.error)
        if self.reference_number:
            return f"{self.derived_kind} {self.reference_number} {self.state}"
        return f"{self.action} {self.state}"


@dataclass
class TransitionOutcome:
    """What happened on top of an already-saved status change."""
    kind: str
    doc_id: int
    previous_status: str
    new_status: str
    results: list[DerivationResult] = field(default_factory=list)

    @property
    def created(self) -> list[DerivationResult]:
        return [r for r in self.results if r.state == CREATED]

    @property
    def failures(self) -> list[DerivationResult]:
        return [r for r in self.results if r.state == FAILED]

    @property
    def ok(self) -> bool:
        return not self.failures


class LifecycleOrchestrator:
    """Runs the transition table against a document store."""

    def __init__(self, store: DocumentStore,
                 allocator: Optional[SequenceAllocator] = None,
                 clock: Callable[[], datetime] = datetime.now,
                 id_factory: Optional[Callable[[], str]] = None,
                 transitions: Optional[list[Transition]] = None):
        self.store = store
        self.allocator = allocator or SequenceAllocator(store)
        self.clock = clock
        self.id_factory = id_factory
        self.transitions = transitions if transitions is not None else TRANSITIONS

    def on_status_change(self, kind: str, doc_id: int,
                         previous_status: str,
                         new_status: str) -> TransitionOutcome:
        """Run every action triggered by ``previous_status -> new_status``.

        Called after the caller has persisted the status change. Failures
        are returned in the outcome rather than raised, because the status
        change itself has already been committed.
        """
        outcome = TransitionOutcome(kind, doc_id, previous_status, new_status)
        fired = [
            t for t in self.transitions
            if t.matches(kind, previous_status, new_status)
        ]
        if not fired:
            return outcome

        try:
            doc = self._require(kind, doc_id)
        except LifecycleError as e:
            logger.error(f"Cannot run {kind} {doc_id} transition: {e}")
            outcome.results.append(DerivationResult("load", FAILED, error=e))
            return outcome

        for transition in fired:
            handler = getattr(self, transition.action)
            try:
                result = handler(doc, transition)
            except DerivationSkipped as e:
                logger.info(str(e))
                result = DerivationResult(transition.action, SKIPPED)
            except LifecycleError as e:
                logger.error(f"{transition.action} failed for "
                             f"{kind} {doc_id}: {e}")
                result = DerivationResult(transition.action, FAILED, error=e)
            outcome.results.append(result)
        return outcome

    # ── Actions ─────────────────────────────────────────────────

    def derive_job_from_estimate(self, estimate,
                                 transition: Transition) -> DerivationResult:
        self._check_guard(estimate, transition)
        draft = derive_job(estimate)
        return self._persist_derived("job", draft, estimate, transition)

    def derive_invoice_from_job(self, job,
                                transition: Transition) -> DerivationResult:
        self._check_guard(job, transition)
        estimate = self._originating_estimate(job)
        draft = derive_invoice(job, estimate, self.clock(), self.id_factory)
        return self._persist_derived("invoice", draft, job, transition)

    def stamp_completion_date(self, job,
                              transition: Transition) -> DerivationResult:
        """Record when a job was first completed; later completions keep it."""
        if job.completion_date:
            return DerivationResult(transition.action, SKIPPED)
        try:
            self.store.update("job", job.id, {"completion_date": self.clock()})
        except Exception as e:
            raise PersistFailure(
                f"Could not set completion date on job {job.job_number}"
            ) from e
        return DerivationResult(transition.action, APPLIED)

    # ── Helpers ─────────────────────────────────────────────────

    def _require(self, kind: str, doc_id: int):
        try:
            doc = self.store.get(kind, doc_id)
        except Exception as e:
            raise PersistFailure(f"Could not read {kind} {doc_id}") from e
        if doc is None:
            raise SourceNotFound(kind, doc_id)
        return doc

    def _check_guard(self, doc, transition: Transition):
        if transition.guard_flag and getattr(doc, transition.guard_flag, 0):
            number = getattr(doc, REFERENCE_FIELDS[transition.kind], doc.id)
            raise DerivationSkipped(
                f"{transition.kind} {number} already has "
                f"{transition.guard_flag} set"
            )

    def _originating_estimate(self, job):
        if job.estimate_id is None:
            return None
        try:
            return self._require("estimate", job.estimate_id)
        except SourceNotFound as e:
            logger.warning(
                f"{e}; invoicing job {job.job_number} with a placeholder line"
            )
            return None

    def _persist_derived(self, kind: str, draft: dict, source,
                         transition: Transition) -> DerivationResult:
        """Number and create the derived document, then flag the source.

        The guard flag is re-read, and then written, while the (kind, day)
        lock is held, so concurrent transitions on one source in this
        process derive once. AllocationFailure and a failed create
        propagate with the guard flag untouched. A failed flag write is
        reported with the id of the document that was already created.
        """
        source_number = getattr(source, REFERENCE_FIELDS[transition.kind])
        with self.allocator.reserve(kind, self.clock()) as number:
            self._check_guard(self._require(transition.kind, source.id),
                              transition)
            draft[REFERENCE_FIELDS[kind]] = number
            try:
                new_id = self.store.create(kind, draft)
            except Exception as e:
                raise PersistFailure(f"Could not create {kind} {number}") from e
            logger.info(f"Created {kind} {number} from {transition.kind} "
                        f"{source_number}")

            try:
                self.store.update(transition.kind, source.id,
                                  {transition.guard_flag: 1})
            except Exception as e:
                logger.error(
                    f"{kind} {number} was created but {transition.guard_flag} "
                    f"could not be set on {transition.kind} {source_number}; "
                    f"a repeated transition will derive again"
                )
                return DerivationResult(
                    transition.action, FAILED, derived_kind=kind,
                    derived_id=new_id, reference_number=number,
                    error=PersistFailure(
                        f"Could not set {transition.guard_flag} on "
                        f"{transition.kind} {source_number}: {e}"
                    ),
                )
        return DerivationResult(
            transition.action, CREATED, derived_kind=kind,
            derived_id=new_id, reference_number=number,
        )
