"""Pipeline error taxonomy.

Setup-phase errors (InvalidInput) surface to the HTTP caller as 4xx.
Record-level errors are caught by the sync orchestrator and turned into
entries in the job's error list. Integration and job persistence errors are
logged and the batch degrades instead of failing.
"""


class PipelineError(Exception):
    """Base class for every error raised by the ingestion pipeline."""


class InvalidInput(PipelineError):
    """Missing tenant id, empty batch, or unknown sync type."""


class RecordProcessingError(PipelineError):
    """A single opportunity failed to upsert or have its contacts extracted.

    Attributes:
        position: 1-based position of the record in its batch.
        reference: The record's external reference, or None when missing.
        message: Short human-readable cause.
    """

    def __init__(self, position: int, reference: str | None, message: str):
        self.position = position
        self.reference = reference
        self.message = message
        super().__init__(self.summary)

    @property
    def summary(self) -> str:
        ref = self.reference or "<no reference>"
        return f"#{self.position} {ref}: {self.message}"


class IntegrationSetupError(PipelineError):
    """The tenant's integration record could not be fetched or created."""


class JobPersistenceError(PipelineError):
    """The sync job row could not be created or updated."""


class InvalidJobTransition(PipelineError):
    """A sync job status change that would move backwards or leave a terminal state."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move sync job from {current!r} to {requested!r}")
