"""Execution of Supabase table queries off the event loop."""

import asyncio
from typing import Any

import httpx
from postgrest.exceptions import APIError

from meal_sync.domain.errors import AuthRequired, NetworkError, RemoteError

_AUTH_ERROR_CODES = {"PGRST301", "PGRST302", "401"}


async def execute_query(query: Any, *, action: str) -> list[dict[str, Any]]:
    """Run a postgrest query builder and return its rows.

    Raises:
        AuthRequired: if the remote rejects the session token.
        NetworkError: on transport failures.
        RemoteError: for any other error answer.
    """
    try:
        response = await asyncio.to_thread(query.execute)
    except APIError as exc:
        raise translate_api_error(exc, action) from exc
    except httpx.TransportError as exc:
        raise NetworkError(f"{action} failed: {exc}") from exc
    return list(response.data or [])


def translate_api_error(exc: APIError, action: str) -> AuthRequired | RemoteError:
    code = str(exc.code or "")
    message = exc.message or str(exc)
    if code in _AUTH_ERROR_CODES or "JWT" in message:
        return AuthRequired()
    return RemoteError(f"{action} failed: {message}")
