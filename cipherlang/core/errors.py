"""Project error hierarchy."""


class CipherLangError(Exception):
    """Base error."""


class MappingValidationError(CipherLangError):
    """Raised when an edit would produce an invalid mapping."""


class DuplicateTokenError(MappingValidationError):
    """Raised when two source characters would share one token."""

    def __init__(self, source: str, token: str, existing: str) -> None:
        super().__init__(f"token already used by {existing!r}")
        self.source = source
        self.token = token
        self.existing = existing


class MappingNotFoundError(CipherLangError):
    """Raised when a mapping id is not in the collection."""


class StorageError(CipherLangError):
    """Raised by storage backends when the durable store is unavailable."""
