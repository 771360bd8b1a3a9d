class MissingReferenceError(RuntimeError):
    """A record points at a client id that does not exist."""

    def __init__(self, client_id: int, source: str = "appointment"):
        self.client_id = client_id
        self.source = source
        super().__init__(f"Client with id {client_id} not found for {source}")


class InvalidRangeError(ValueError):
    """Rejected date range or period keyword, raised before any aggregation."""


class PartialUpdateError(RuntimeError):
    """A multi-entity update failed part way and was rolled back."""

    def __init__(self, message: str, step: str | None = None):
        self.step = step
        super().__init__(message)
