"""Error types shared by the cache, the openFDA client and the resolver."""

from typing import Optional


class MedBotError(Exception):
    """Base class for MedBot errors."""


class DrugNotFoundError(MedBotError):
    """openFDA confirmed there is no label matching the search term."""

    def __init__(self, term: str):
        super().__init__(f"No drug found for '{term}'")
        self.term = term


class UpstreamError(MedBotError):
    """openFDA could not be reached or answered with something unusable."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StorageError(MedBotError):
    """The SQLite store could not complete an operation."""
