"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from meal_sync.api.models import (
    CollectionResponse,
    DayResponse,
    FiltersModel,
    LoginRequest,
    ScanRequest,
    ScanResult,
    SearchQuery,
    TotalsModel,
    WeekResponse,
)
from meal_sync.app_logging import configure_logging
from meal_sync.containers import AppContainer
from meal_sync.domain.errors import ErrorInfo, SyncError

_STATUS_BY_TAG = {
    "auth_required": 401,
    "not_found": 404,
    "invalid_operation": 409,
    "validation_error": 422,
    "network_error": 502,
    "remote_error": 502,
}


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.exception_handler(SyncError)
    async def sync_error_handler(request: Request, exc: SyncError) -> JSONResponse:
        info = ErrorInfo.from_error(exc)
        status_code = _STATUS_BY_TAG.get(info.tag, 500)
        logger.info("%s %s -> %s", request.method, request.url.path, info.tag)
        return JSONResponse(
            status_code=status_code,
            content={
                "error": {
                    "tag": info.tag,
                    "message": info.message,
                    "retryable": info.retryable,
                }
            },
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/auth/login")
    async def login(payload: LoginRequest, request: Request) -> dict[str, str]:
        """Start a session for the API process."""
        state_container: AppContainer = request.app.state.container
        user_id = await state_container.session.sign_in(
            payload.email, payload.password
        )
        return {"user_id": user_id}

    @app.post("/auth/logout")
    async def logout(request: Request) -> dict[str, str]:
        state_container: AppContainer = request.app.state.container
        await state_container.session.sign_out()
        state_container.collection_service.release()
        return {"status": "ok"}

    @app.get("/meals")
    async def load_meals(request: Request) -> CollectionResponse:
        """Load the meal list, using the cache when possible."""
        service = request.app.state.container.collection_service
        return CollectionResponse.from_view(await service.load_collection())

    @app.get("/meals/view")
    async def meals_view(request: Request) -> CollectionResponse:
        """Return the current meal list without fetching."""
        service = request.app.state.container.collection_service
        return CollectionResponse.from_view(await service.view())

    @app.post("/meals/refresh")
    async def refresh_meals(request: Request) -> CollectionResponse:
        service = request.app.state.container.collection_service
        return CollectionResponse.from_view(await service.refresh())

    @app.post("/meals/load-more")
    async def load_more_meals(request: Request) -> CollectionResponse:
        service = request.app.state.container.collection_service
        return CollectionResponse.from_view(await service.load_more())

    @app.put("/meals/filters")
    async def apply_filters(
        payload: FiltersModel, request: Request
    ) -> CollectionResponse:
        """Replace the active filters."""
        service = request.app.state.container.collection_service
        view = await service.apply_filters(payload.to_spec())
        return CollectionResponse.from_view(view)

    @app.delete("/meals/filters")
    async def clear_filters(request: Request) -> CollectionResponse:
        service = request.app.state.container.collection_service
        return CollectionResponse.from_view(await service.clear_filters())

    @app.put("/meals/search")
    async def set_search_query(
        payload: SearchQuery, request: Request
    ) -> CollectionResponse:
        service = request.app.state.container.collection_service
        view = await service.set_search_query(payload.query)
        return CollectionResponse.from_view(view)

    @app.post("/meals/{record_id}/favorite")
    async def toggle_favorite(record_id: str, request: Request) -> CollectionResponse:
        """Flip a meal's favorite flag."""
        service = request.app.state.container.collection_service
        view = await service.toggle_favorite(_parse_record_id(record_id))
        return CollectionResponse.from_view(view)

    @app.get("/plan/week")
    async def load_week(
        request: Request, start: date | None = None, refresh: bool = False
    ) -> WeekResponse:
        """Load a week of dates starting on ``start`` or the current Sunday."""
        service = request.app.state.container.plan_service
        days = await service.load_week(start, refresh=refresh)
        return WeekResponse(days=[DayResponse.from_view(day) for day in days])

    @app.post("/plan/week/refresh")
    async def refresh_week(request: Request) -> WeekResponse:
        service = request.app.state.container.plan_service
        days = await service.refresh_week()
        return WeekResponse(days=[DayResponse.from_view(day) for day in days])

    @app.post("/plan/week/next")
    async def load_next_week(request: Request) -> WeekResponse:
        service = request.app.state.container.plan_service
        days = await service.load_next_week()
        return WeekResponse(days=[DayResponse.from_view(day) for day in days])

    @app.get("/plan/days")
    async def loaded_days(request: Request) -> WeekResponse:
        service = request.app.state.container.plan_service
        return WeekResponse(days=[DayResponse.from_view(d) for d in service.days()])

    @app.get("/plan/days/{day}/totals")
    async def day_totals(day: date, request: Request) -> TotalsModel:
        service = request.app.state.container.plan_service
        return TotalsModel.from_totals(service.day_totals(day.isoformat()))

    @app.delete("/plan/days/{day}/meals")
    async def delete_records_for_date(day: date, request: Request) -> DayResponse:
        """Delete the planned meals of a date."""
        service = request.app.state.container.plan_service
        view = await service.delete_records_for_date(day.isoformat())
        return DayResponse.from_view(view)

    @app.delete("/plan/scanned/{record_id}")
    async def delete_derived_record(record_id: str, request: Request) -> DayResponse:
        """Delete a scanned meal."""
        service = request.app.state.container.plan_service
        view = await service.delete_derived_record(_parse_record_id(record_id))
        return DayResponse.from_view(view)

    @app.post("/plan/days/{day}/scan")
    async def scan_meal(
        day: date, payload: ScanRequest, request: Request
    ) -> ScanResult:
        """Analyze a meal photo and store it under ``day``."""
        service = request.app.state.container.plan_service
        nutrition, view = await service.scan_meal(
            payload.image_base64, day.isoformat()
        )
        return ScanResult(
            food_label=nutrition.food_label,
            calories=nutrition.calories,
            protein=nutrition.protein,
            carbohydrates=nutrition.carbohydrates,
            fat=nutrition.fat,
            day=DayResponse.from_view(view),
        )

    return app


def _parse_record_id(raw: str) -> int | str:
    return int(raw) if raw.isdigit() else raw
