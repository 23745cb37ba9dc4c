"""Authentication collaborators -- provider interface and Firebase implementation."""

from src.bizops.auth.base import AuthProvider, Identity
from src.bizops.auth.firebase import FirebasePasswordAuthProvider

__all__ = ["AuthProvider", "Identity", "FirebasePasswordAuthProvider"]
