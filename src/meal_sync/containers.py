"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from meal_sync.adapters.meal_scanner_client import HttpxMealScannerClient
from meal_sync.adapters.supabase_meal_repository import SupabaseMealRepository
from meal_sync.adapters.supabase_session import SupabaseSessionProvider
from meal_sync.adapters.supabase_storage import SupabaseKeyValueStorage
from meal_sync.config import Settings
from meal_sync.services.cache import InMemoryRecordCache
from meal_sync.services.collections import MealCollectionService
from meal_sync.services.debounce import Debouncer
from meal_sync.services.fetch import FetchOrchestrator
from meal_sync.services.filters import FilterEngine
from meal_sync.services.mutations import OptimisticMutationManager
from meal_sync.services.pagination import PaginationController
from meal_sync.services.persistence import FilterPersistence
from meal_sync.services.planner import MealPlanService
from meal_sync.services.retry import RetryPolicy


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session: SupabaseSessionProvider
    collection_service: MealCollectionService
    plan_service: MealPlanService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_anon_key
    )
    session = SupabaseSessionProvider(supabase_client)
    repository = SupabaseMealRepository(supabase_client)
    storage = SupabaseKeyValueStorage(supabase_client)
    cache = InMemoryRecordCache(ttl_seconds=resolved_settings.cache_ttl_seconds)
    pagination = PaginationController()
    orchestrator = FetchOrchestrator(
        repository=repository,
        cache=cache,
        pagination=pagination,
        retry_policy=RetryPolicy(
            max_retries=resolved_settings.retry_max_retries,
            base_delay_seconds=resolved_settings.retry_base_delay_seconds,
        ),
    )
    mutations = OptimisticMutationManager(repository=repository, cache=cache)
    engine = FilterEngine(
        pagination=pagination,
        debouncer=Debouncer(
            resolved_settings.backfill_delay_seconds, name="backfill"
        ),
        threshold=resolved_settings.backfill_threshold,
    )
    persistence = FilterPersistence(
        storage=storage,
        restore_timeout_seconds=resolved_settings.filter_restore_timeout_seconds,
        save_delay_seconds=resolved_settings.filter_save_delay_seconds,
    )
    scanner = HttpxMealScannerClient.create(
        supabase_url=resolved_settings.supabase_url,
        anon_key=resolved_settings.supabase_anon_key,
        function_name=resolved_settings.meal_scanner_function,
        access_token=session.access_token,
    )
    collection_service = MealCollectionService(
        session=session,
        orchestrator=orchestrator,
        engine=engine,
        mutations=mutations,
        persistence=persistence,
    )
    plan_service = MealPlanService(
        session=session,
        orchestrator=orchestrator,
        mutations=mutations,
        scanner=scanner,
        cache=cache,
    )

    async def close_resources() -> None:
        collection_service.release()
        await persistence.drain()
        await scanner.close()

    return AppContainer(
        settings=resolved_settings,
        session=session,
        collection_service=collection_service,
        plan_service=plan_service,
        close_resources=close_resources,
    )
