"""
Error kinds raised while issuing and rotating kubeconfig credentials.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    DEPENDENT_AUTHORITY_NOT_FOUND = "dependent_authority_not_found"
    CERTIFICATE_DECODE_FAILURE = "certificate_decode_failure"
    PRIVATE_KEY_DECODE_FAILURE = "private_key_decode_failure"
    CERTIFICATE_ABSENT = "certificate_absent"
    PRIVATE_KEY_ABSENT = "private_key_absent"
    SIGNING_FAILURE = "signing_failure"
    SERIALIZATION_FAILURE = "serialization_failure"
    DESERIALIZATION_FAILURE = "deserialization_failure"
    MALFORMED_RECORD_ADDRESS = "malformed_record_address"
    PAYLOAD_FIELD_MISSING = "payload_field_missing"


# Kinds that mean a certificate authority has not been provisioned yet.
_AWAITING_DEPENDENCY = frozenset({
    ErrorKind.DEPENDENT_AUTHORITY_NOT_FOUND,
    ErrorKind.CERTIFICATE_ABSENT,
    ErrorKind.PRIVATE_KEY_ABSENT,
})


class KubeconfigError(Exception):
    """Failure while building, encoding or rotating a kubeconfig."""

    def __init__(self, kind: ErrorKind, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def awaiting_dependency(self) -> bool:
        """True when waiting for a CA to be provisioned may resolve the error."""
        return self.kind in _AWAITING_DEPENDENCY

    def __str__(self):
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class StoreError(Exception):
    """Base class for secret store failures."""


class NotFoundError(StoreError):
    """The requested secret does not exist."""


class AlreadyExistsError(StoreError):
    """A secret with the same namespace and name already exists."""


class ConflictError(StoreError):
    """The secret was modified since it was read."""
