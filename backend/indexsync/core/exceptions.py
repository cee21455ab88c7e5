"""Service-level exceptions."""


class ConfigurationError(Exception):
    """Raised when an operation references something that is not configured.

    Examples:
    - Unknown search index name
    - Search engine integration disabled but an index setup was requested
    - Processor used before ``setup`` ran

    Callers on fire-and-forget paths log and drop these; admin endpoints
    translate them into a 404.
    """

    pass


class NotConfiguredError(ConfigurationError):
    """Raised when an optional integration is required but disabled."""

    def __init__(self, integration: str):
        """Create the error for the named integration."""
        self.integration = integration
        super().__init__(f"{integration} integration is not configured")


class TransientStoreError(Exception):
    """Raised when an external store call fails in a way that may succeed later.

    Covers network errors, timeouts, 5xx and 429 responses from the primary
    store, the event store or the search engine. Retried with backoff; if the
    retries are exhausted the batch fails and its ids stay eligible for the
    next run because the cursor did not advance past them.

    Usage:
        raise TransientStoreError(f"ClickHouse unavailable: {e}") from e
    """

    def __init__(self, message: str, store: str = "unknown"):
        """Create the error for the named store."""
        self.store = store
        super().__init__(message)


class OperationCancelledError(Exception):
    """Raised when an in-flight operation was aborted by its owning job.

    This is not a failure: the job was stopped on purpose (request closed,
    explicit stop). It is logged at debug level and never retried.
    """

    pass
