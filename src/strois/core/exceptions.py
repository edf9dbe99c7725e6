"""Exception hierarchy for strois.

Every failure surfaced by the library derives from :class:`StroisError` and
falls into one of four families:

* :class:`UserError` - the caller asked for something that cannot work
  (bad configuration, too many parts, text view of a binary payload).
* ``StoreError`` - the store rejected the request with a structured error
  body. Defined in :mod:`strois.objectstorage.errors` next to the error
  code enumeration.
* :class:`TransportError` - the HTTP exchange itself could not complete.
* :class:`InternalError` - the store answered in a way that violates its
  documented contract.
"""

from typing import Optional


class StroisError(Exception):
    """Base exception for all strois errors."""

    pass


class UserError(StroisError):
    """Raised when the caller misuses the library."""

    pass


class ConfigurationError(UserError):
    """Raised when a client configuration is incomplete or invalid."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class PartLimitExceededError(UserError):
    """Raised when a multipart upload would need more parts than allowed."""

    def __init__(self, key: str, limit: int):
        super().__init__(
            f"Multipart upload of '{key}' needs more than {limit} parts; "
            "use a larger part size"
        )
        self.key = key
        self.limit = limit


class PayloadNotUtf8Error(UserError):
    """Raised when an object requested as text is not valid UTF-8.

    The object can still be fetched with ``get_object_bytes``.
    """

    def __init__(self, key: str, cause: UnicodeDecodeError):
        super().__init__(f"Object '{key}' is not valid UTF-8: {cause}")
        self.key = key
        self.cause = cause


class TransportError(StroisError):
    """Raised when the HTTP exchange fails before a status is received."""

    pass


class InternalError(StroisError):
    """Raised when the store returns a response that breaks its contract."""

    pass
