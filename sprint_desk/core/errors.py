# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Domain errors — raised by services, translated to HTTP codes by controllers.

KeyError (unknown record) and PermissionError (owner-only command) are the
built-in exceptions and are used as-is.
"""


class ConfigError(Exception):
    """Rotation config is unusable. Fatal at startup."""


class ValidationError(ValueError):
    """User input rejected at the boundary; no state was mutated."""


class RoundStateError(RuntimeError):
    """Command not allowed in the current poker round or sprint plan state."""


class CollaboratorError(Exception):
    """A record store operation failed. Local state is left unchanged."""

    def __init__(self, operation: str, collection: str, detail: str = "") -> None:
        self.operation = operation
        self.collection = collection
        self.detail = detail
        message = f"Store {operation} on '{collection}' failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class RecordConflictError(CollaboratorError):
    """Create rejected because a record with the same unique key exists."""

    def __init__(self, collection: str, detail: str = "") -> None:
        super().__init__("create", collection, detail)


# ── HTTP mapping (used by controllers) ──

DOMAIN_ERRORS = (
    ConfigError,
    CollaboratorError,
    KeyError,
    PermissionError,
    RuntimeError,
    ValueError,
)


def status_for(exc: Exception) -> int:
    """HTTP status for a domain error. Subclasses are checked before their bases."""
    if isinstance(exc, RecordConflictError):
        return 409
    if isinstance(exc, CollaboratorError):
        return 502
    if isinstance(exc, ConfigError):
        return 500
    if isinstance(exc, KeyError):
        return 404
    if isinstance(exc, PermissionError):
        return 403
    if isinstance(exc, RoundStateError):
        return 409
    if isinstance(exc, ValueError):
        return 400
    return 500


def detail_for(exc: Exception) -> str:
    # KeyError's str() wraps the message in quotes.
    if isinstance(exc, KeyError) and exc.args:
        return str(exc.args[0])
    return str(exc)
