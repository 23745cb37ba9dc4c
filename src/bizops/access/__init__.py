"""Access control -- allow-list gate, session context and users seed."""

from src.bizops.access.gate import AccessGate, AccessState, DenialReason
from src.bizops.access.seeding import default_users, seed_users
from src.bizops.access.session import SessionContext, is_allowed

__all__ = [
    "AccessGate",
    "AccessState",
    "DenialReason",
    "SessionContext",
    "default_users",
    "is_allowed",
    "seed_users",
]
