"""Exceptions raised by the document lifecycle engine."""


class LifecycleError(Exception):
    """Base exception for lifecycle operations."""


class AllocationFailure(LifecycleError):
    """A reference number could not be allocated."""


class PersistFailure(LifecycleError):
    """A store call (create, update or read) failed."""


class DerivationSkipped(LifecycleError):
    """The source document's guard flag is already set.

    Not an error condition: the derivation already happened once.
    """


class SourceNotFound(LifecycleError):
    """A referenced document does not exist in the store."""

    def __init__(self, kind: str, doc_id):
        super().__init__(f"{kind} {doc_id} not found")
        self.kind = kind
        self.doc_id = doc_id
