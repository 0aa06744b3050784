"""Admin dashboard services."""

from .auth import AdminSessionService, IssuedAdminSession, hash_password

__all__ = ["AdminSessionService", "IssuedAdminSession", "hash_password"]
