"""Persistent models. Importing the package registers every table on Base.metadata."""
from models.user import User
from models.refresh_token import RefreshToken

__all__ = ["User", "RefreshToken"]
