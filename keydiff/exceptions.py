class KeyDiffError(Exception):
    """Base class for errors raised by the comparison core."""

    def __init__(self, message: str, details: str = ''):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        return {'error': self.message, 'details': self.details}


class ParseError(KeyDiffError):
    """A file could not be turned into a dataset."""


class KeyColumnError(KeyDiffError):
    """No usable key column was selected."""


class SessionStateError(KeyDiffError):
    """An operation was requested before its inputs were available."""


class DuplicateKeyWarning(UserWarning):
    """The same key appeared more than once in one dataset."""
