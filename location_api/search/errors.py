from typing import Optional


class InvalidArgument(ValueError):
    """Raised for caller errors such as a non-positive result limit."""


class DatasetLoadError(Exception):
    """
    Raised by LocationStore.load() when the incoming records are malformed.
    The previously active dataset stays in place.
    """

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details
