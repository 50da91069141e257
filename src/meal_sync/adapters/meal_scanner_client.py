"""Client for the meal image analysis edge function."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from meal_sync.domain.errors import AuthRequired, NetworkError, RemoteError
from meal_sync.services.planner import MealScannerClient

_AUTH_STATUSES = {401, 403}


@dataclass
class HttpxMealScannerClient(MealScannerClient):
    """HTTPX-backed client for the ``Meal_Scanner`` function."""

    function_url: str
    anon_key: str
    access_token: Callable[[], Awaitable[str]]
    http_client: httpx.AsyncClient

    @classmethod
    def create(
        cls,
        supabase_url: str,
        anon_key: str,
        function_name: str,
        access_token: Callable[[], Awaitable[str]],
    ) -> "HttpxMealScannerClient":
        """Create a scanner client with a managed httpx session."""
        return cls(
            function_url=f"{supabase_url.rstrip('/')}/functions/v1/{function_name}",
            anon_key=anon_key,
            access_token=access_token,
            http_client=httpx.AsyncClient(),
        )

    async def analyze(self, image_base64: str, target_date: str) -> dict[str, object]:
        """Send an encoded photo for analysis and return the raw payload.

        Error payloads (``{"error", "details"}``) are returned as-is so the
        caller can report the service's message.
        """
        token = await self.access_token()
        try:
            response = await self.http_client.post(
                self.function_url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "apikey": self.anon_key,
                },
                json={"image": image_base64, "date": target_date},
                timeout=60,
            )
        except httpx.TransportError as exc:
            raise NetworkError(f"Meal analysis failed: {exc}") from exc
        if response.status_code in _AUTH_STATUSES:
            raise AuthRequired()
        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteError(
                f"Meal analysis returned {response.status_code}"
            ) from exc
        if not isinstance(payload, dict):
            raise RemoteError("Meal analysis returned an unexpected payload")
        return payload

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
