"""Sync engine exceptions."""


class MalformedRowError(Exception):
    """Raised by a transform when a single row cannot become a document.

    This is a recoverable error: the row is logged with its id and skipped,
    and the rest of the batch is still pushed.

    Usage:
        raise MalformedRowError(row["id"], "missing username")
    """

    def __init__(self, entity_id, reason: str):
        """Create the error for the offending row."""
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Row {entity_id} is malformed: {reason}")


class IndexBusyError(Exception):
    """Raised when a run is requested for an index that already has one in flight."""

    def __init__(self, index_name: str):
        """Create the error for the busy index."""
        self.index_name = index_name
        super().__init__(f"A run for {index_name} is already in progress")
