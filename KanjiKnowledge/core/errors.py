"""Exception taxonomy shared by every engine service."""
from __future__ import annotations


class KanjiEngineError(Exception):
    """Base class for all errors raised by the engine."""


class InitializationError(KanjiEngineError):
    """Catalog or store could not be created or seeded.

    Fatal for the engine: dependent features must not be used until a
    subsequent `initialize()` succeeds.
    """


class InvalidArgument(KanjiEngineError, ValueError):
    """Malformed call parameters (bad pagination, empty character set, ...)."""


class NotFound(KanjiEngineError, LookupError):
    """Reserved. Core lookups return ``None``/empty instead of raising this."""


class PersistenceError(KanjiEngineError):
    """Storage I/O failed while serving a call.

    Writes are all-or-nothing, so a failed write has not committed. The
    engine never retries internally; callers decide whether to retry.
    """
