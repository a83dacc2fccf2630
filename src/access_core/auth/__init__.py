"""Authentication utilities for the access services."""

from .service import AuthResult, AuthService, CurrentUser

__all__ = ["AuthResult", "AuthService", "CurrentUser"]
