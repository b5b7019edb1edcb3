from typing import Optional


class CertiTrustError(Exception):
    """Base error carrying a message that is safe to show to the user"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RecordValidationError(CertiTrustError):
    """Malformed input: a record without a name, an unsupported upload, a non-array bulk file"""


class OracleFailure(CertiTrustError):
    """The OCR / tampering model call failed"""

    QUOTA = "quota"
    OVERLOADED = "overloaded"
    INCOMPLETE = "incomplete"
    GENERIC = "generic"

    def __init__(self, message: str, kind: str = GENERIC, cause: Optional[Exception] = None):
        super().__init__(message)
        self.kind = kind
        self.cause = cause


class StoreUnavailable(CertiTrustError):
    """The record store could not be read or written"""
