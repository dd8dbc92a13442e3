class ReconciliationError(Exception):
    """Base exception for device reconciliation errors."""
    pass


class SnapshotNotPopulatedError(ReconciliationError):
    """Raised when a query runs before any reconciliation pass has stored a snapshot."""

    def __init__(self, message: str = "No device snapshot available. Run a refresh first."):
        super().__init__(message)


class SourceFetchError(ReconciliationError):
    """Raised when a source adapter cannot retrieve its device collection."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"Failed to fetch {source} devices: {message}")


class SealedRecordError(ReconciliationError, AttributeError):
    """Raised when a device record is modified after its reconciliation pass completed."""
    pass


class PredicateSyntaxError(ReconciliationError, ValueError):
    """Raised when a filter expression cannot be parsed."""
    pass
