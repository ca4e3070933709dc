"""
Role-based access decisions.

A single predicate decides whether a caller may read another user's
documents; routes turn a denial into a 403.
"""
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Union

from onboarding.models import Role


@dataclass(frozen=True)
class AccessGranted:
    role: str
    via: str  # "role" or "self"


@dataclass(frozen=True)
class AccessDenied:
    reason: str


AccessDecision = Union[AccessGranted, AccessDenied]

BACKGROUND_CHECK_VIEWERS: FrozenSet[str] = frozenset({
    Role.ADMIN.value,
    Role.HR.value,
    Role.EXEC.value,
    Role.BACKGROUND_CHECKER.value,
})

ONBOARDING_PACKET_VIEWERS: FrozenSet[str] = frozenset({
    Role.ADMIN.value,
    Role.HR.value,
    Role.EXEC.value,
})


# Stored roles use "backgroundchecker"; older rows carry "background-checker"
_ROLE_SEPARATORS = str.maketrans("", "", "-_ ")


def normalize_role(role: Optional[str]) -> str:
    return (role or "").strip().lower().translate(_ROLE_SEPARATORS)


def decide_access(
    role: Optional[str],
    capabilities: Iterable[str],
    caller_id: Optional[str] = None,
    subject_id: Optional[str] = None,
    allow_self: bool = False,
) -> AccessDecision:
    """
    Decide whether a caller with `role` may act on `subject_id`'s documents.

    Roles compare case-insensitively, ignoring surrounding whitespace and
    "-", "_" or space separators. With `allow_self`, a
    caller acting on their own documents is granted regardless of role.
    """
    normalized = normalize_role(role)

    if normalized and normalized in {normalize_role(c) for c in capabilities}:
        return AccessGranted(role=normalized, via="role")

    if allow_self and caller_id and subject_id and caller_id == subject_id:
        return AccessGranted(role=normalized, via="self")

    if not normalized:
        return AccessDenied(reason="No role assigned")
    return AccessDenied(reason=f"Role '{normalized}' is not permitted")
