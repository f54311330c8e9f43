"""Errors raised by the fantasy-points core."""


class MissingFieldError(Exception):
    """Raised when a stat record lacks its player id or projection source."""


class DuplicateKeyError(Exception):
    """Raised when computed points already exist for a (player, source, rule) key."""


class NameConflictError(Exception):
    """Raised when a scoring rule name is already taken."""


class PersistenceError(Exception):
    """Raised when the durable store cannot be read or written.

    ``transient`` is True for failures worth retrying as-is, such as a
    locked or busy database.
    """

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient
