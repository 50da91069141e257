"""Signed-in user lookup."""

from typing import Protocol


class SessionProvider(Protocol):
    """Source of the current user's identity."""

    async def current_user_id(self) -> str:
        """Return the signed-in user id or raise AuthRequired."""
