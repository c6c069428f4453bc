"""
Error taxonomy for the back-office core

ValidationError and IllegalTransition abort before any write. CommitFailed aborts
the whole unit of work. SideEffectFailed is never raised: it is attached to a
successful result as a warning.
"""
from dataclasses import dataclass
from typing import Optional


class BackofficeError(Exception):
    """Base class for core errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BackofficeError):
    """Bad input shape or role violation, rejected before any write"""


class NotFound(ValidationError):
    """Referenced entity does not exist"""


class PermissionDenied(ValidationError):
    """Actor lacks the capability for the requested change"""


class CommitFailed(BackofficeError):
    """Atomic multi-document write rejected by the store"""


class ConcurrentModification(CommitFailed):
    """Stored version no longer matches the version the caller read"""


class IllegalTransition(BackofficeError):
    """Recruiting pipeline edge not in the transition table"""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move candidate from '{current}' to '{target}'")
        self.current = current
        self.target = target


@dataclass(frozen=True)
class SideEffectFailed:
    """A post-commit side effect (audit, notification, messaging) that failed"""
    effect: str
    detail: str
    recipient_id: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "effect": self.effect,
            "detail": self.detail,
            "recipient_id": self.recipient_id,
        }
