"""Engine Exceptions."""


class MalformedBarError(ValueError):
    """Raised when a bar violates the OHLC invariant or the series ordering contract."""

    def __init__(self, message: str, index: int | None = None):
        self.index = index
        if index is not None:
            message = f"bar[{index}]: {message}"
        super().__init__(message)


class NarrativeError(Exception):
    """Raised when the narrative collaborator cannot produce text."""


class NarrativeUnavailableError(NarrativeError):
    """Raised when the narrative collaborator is not configured."""
