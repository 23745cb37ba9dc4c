"""Session context for an authorized user.

Produced once by the access gate when an identity is authorized and passed
explicitly to whatever needs to know who is acting. Immutable; a new
authorization produces a new context.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class SessionContext:
    """Immutable context for the current authorized session."""

    email: str
    allowed_emails: tuple[str, ...]
    uid: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def is_allowed(email: str | None, allowed_emails: tuple[str, ...] | list[str]) -> bool:
    """Case-insensitive allow-list membership. Empty addresses never match."""
    address = normalize_email(email)
    return bool(address) and address in {normalize_email(e) for e in allowed_emails}
