"""Supabase auth session provider."""

import asyncio
from dataclasses import dataclass

import httpx
from supabase import Client
from supabase_auth.errors import AuthError

from meal_sync.domain.errors import AuthRequired, NetworkError
from meal_sync.services.session import SessionProvider


@dataclass
class SupabaseSessionProvider(SessionProvider):
    """Reads the signed-in user from the Supabase client's auth session."""

    client: Client

    async def current_user_id(self) -> str:
        """Return the signed-in user's id.

        Raises:
            AuthRequired: if there is no valid session.
        """
        try:
            response = await asyncio.to_thread(self.client.auth.get_user)
        except AuthError as exc:
            raise AuthRequired() from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Session lookup failed: {exc}") from exc
        if response is None or response.user is None:
            raise AuthRequired()
        return str(response.user.id)

    async def access_token(self) -> str:
        """Return the current session's bearer token."""
        try:
            session = await asyncio.to_thread(self.client.auth.get_session)
        except AuthError as exc:
            raise AuthRequired() from exc
        if session is None or not session.access_token:
            raise AuthRequired()
        return session.access_token

    async def sign_in(self, email: str, password: str) -> str:
        """Start a session with email and password and return the user id."""
        try:
            response = await asyncio.to_thread(
                self.client.auth.sign_in_with_password,
                {"email": email, "password": password},
            )
        except AuthError as exc:
            raise AuthRequired(exc.message) from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Sign in failed: {exc}") from exc
        if response.user is None:
            raise AuthRequired()
        return str(response.user.id)

    async def sign_out(self) -> None:
        """End the current session."""
        await asyncio.to_thread(self.client.auth.sign_out)
