"""Tests for the flat meal list service."""

import asyncio

import pytest

from meal_sync.domain.errors import (
    AuthRequired,
    FilterValidationError,
    NetworkError,
    NotFound,
    RemoteError,
)
from meal_sync.domain.filters import AiFilter, Bound, FilterSpec, NutrientField
from meal_sync.domain.state import CollectionView, FetchStatus
from meal_sync.services.persistence import encode_bounds
from tests.conftest import (
    InMemoryKeyValueStorage,
    InMemoryMealRepository,
    build_stack,
    make_meals,
)


def _calorie_floor(low: str) -> FilterSpec:
    bounds = {nutrient: Bound() for nutrient in NutrientField}
    bounds[NutrientField.CALORIES] = Bound(greater_than=low)
    return FilterSpec(bounds=bounds)


def test_load_collection_returns_first_page() -> None:
    stack = build_stack(InMemoryMealRepository(meals=make_meals(25)))

    view = asyncio.run(stack.collection_service.load_collection())

    assert len(view.records) == 20
    assert view.visible == view.records
    assert view.has_more
    assert view.status is FetchStatus.LOADED
    assert view.error is None


def test_load_more_appends_next_page() -> None:
    stack = build_stack(InMemoryMealRepository(meals=make_meals(25)))
    service = stack.collection_service

    async def run() -> CollectionView:
        await service.load_collection()
        return await service.load_more()

    view = asyncio.run(run())

    assert len(view.records) == 25
    assert not view.has_more
    assert view.page == 1


def test_remote_failure_is_reported_in_view() -> None:
    repository = InMemoryMealRepository(list_errors=[NetworkError("offline")] * 4)
    stack = build_stack(repository)

    view = asyncio.run(stack.collection_service.load_collection())

    assert view.status is FetchStatus.ERROR
    assert view.error is not None
    assert view.error.tag == "network_error"
    assert view.error.retryable
    assert stack.sleep.delays == [1.0, 2.0, 4.0]


def test_missing_session_raises() -> None:
    stack = build_stack()
    stack.session.user_id = None

    with pytest.raises(AuthRequired):
        asyncio.run(stack.collection_service.load_collection())


def test_numeric_filter_triggers_exactly_one_backfill() -> None:
    meals = make_meals(20, start=21, calories=100.0) + make_meals(
        5, start=1, calories=900.0
    )
    repository = InMemoryMealRepository(meals=meals)
    stack = build_stack(repository)
    service = stack.collection_service

    async def run() -> CollectionView:
        await service.load_collection()
        await service.apply_filters(_calorie_floor("500"))
        await service.wait_idle()
        return await service.view()

    view = asyncio.run(run())

    assert len(repository.list_calls) == 2
    assert len(view.records) == 25
    assert [record.id for record in view.visible] == [5, 4, 3, 2, 1]
    assert not view.has_more


def test_categorical_filter_refetches_from_first_page() -> None:
    meals = make_meals(3, cuisine="Thai") + make_meals(3, start=4, cuisine="Greek")
    repository = InMemoryMealRepository(meals=meals)
    stack = build_stack(repository)
    service = stack.collection_service

    async def run() -> CollectionView:
        await service.load_collection()
        return await service.apply_filters(FilterSpec(cuisine="Greek"))

    view = asyncio.run(run())

    assert repository.list_calls[-1][0] == 0
    assert repository.list_calls[-1][2].cuisine == "Greek"
    assert [record.id for record in view.records] == [6, 5, 4]


def test_invalid_filters_are_rejected_before_applying() -> None:
    stack = build_stack(InMemoryMealRepository(meals=make_meals(3)))
    service = stack.collection_service

    async def run() -> CollectionView:
        await service.load_collection()
        with pytest.raises(FilterValidationError):
            await service.apply_filters(_calorie_floor("many"))
        return await service.view()

    view = asyncio.run(run())

    assert view.filters == FilterSpec()
    assert len(view.visible) == 3


def test_search_query_filters_locally_and_persists() -> None:
    storage = InMemoryKeyValueStorage()
    stack = build_stack(InMemoryMealRepository(meals=make_meals(12)), storage)
    service = stack.collection_service

    async def run() -> CollectionView:
        await service.load_collection()
        view = await service.set_search_query("meal 1")
        await service.wait_idle()
        return view

    view = asyncio.run(run())

    assert [record.id for record in view.visible] == [12, 11, 10, 1]
    assert storage.values["searchQuery_MyMeals_user-1"] == "meal 1"
    assert len(stack.repository.list_calls) == 1


def test_restored_filters_apply_on_load() -> None:
    storage = InMemoryKeyValueStorage(
        values={
            "filters_MyMeals_user-1": encode_bounds(_calorie_floor("500")),
            "aiFilter_MyMeals_user-1": "ai",
        }
    )
    repository = InMemoryMealRepository(
        meals=make_meals(2, created_by_ai=True, calories=800.0)
        + make_meals(2, start=3, created_by_ai=False, calories=800.0)
    )
    stack = build_stack(repository, storage)

    view = asyncio.run(stack.collection_service.load_collection())

    assert view.filters.ai_filter is AiFilter.AI
    assert repository.list_calls[0][2].ai_filter is AiFilter.AI
    assert [record.id for record in view.visible] == [2, 1]


def test_clear_filters_resets_and_refetches() -> None:
    repository = InMemoryMealRepository(
        meals=make_meals(2, cuisine="Thai") + make_meals(2, start=3)
    )
    storage = InMemoryKeyValueStorage()
    stack = build_stack(repository, storage)
    service = stack.collection_service

    async def run() -> CollectionView:
        await service.load_collection()
        await service.apply_filters(FilterSpec(cuisine="Thai"))
        await service.wait_idle()
        view = await service.clear_filters()
        await service.wait_idle()
        return view

    view = asyncio.run(run())

    assert view.filters == FilterSpec()
    assert len(view.records) == 4
    assert storage.values == {}


def test_toggle_favorite_failure_restores_flag() -> None:
    repository = InMemoryMealRepository(
        meals=make_meals(2), favorite_error=RemoteError("denied")
    )
    stack = build_stack(repository)
    service = stack.collection_service

    async def run() -> CollectionView:
        await service.load_collection()
        return await service.toggle_favorite(2)

    view = asyncio.run(run())

    assert not any(record.favorite for record in view.records)
    assert view.error is not None
    assert view.error.tag == "remote_error"


def test_toggle_favorite_unknown_meal_raises() -> None:
    stack = build_stack(InMemoryMealRepository(meals=make_meals(2)))
    service = stack.collection_service

    async def run() -> None:
        await service.load_collection()
        await service.toggle_favorite(99)

    with pytest.raises(NotFound):
        asyncio.run(run())


def test_user_change_starts_fresh_collection() -> None:
    stack = build_stack(InMemoryMealRepository(meals=make_meals(3)))
    service = stack.collection_service

    async def run() -> CollectionView:
        await service.load_collection()
        stack.session.user_id = "user-2"
        return await service.view()

    view = asyncio.run(run())

    assert view.key.owner_id == "user-2"
    assert view.records == []
    assert view.status is FetchStatus.IDLE


def test_failed_backfill_is_not_retried_automatically() -> None:
    repository = InMemoryMealRepository(meals=make_meals(45, calories=100.0))
    stack = build_stack(repository)
    service = stack.collection_service

    async def run() -> CollectionView:
        await service.load_collection()
        repository.list_errors = [NetworkError("offline")] * 12
        await service.apply_filters(_calorie_floor("500"))
        await service.wait_idle()
        return await service.view()

    view = asyncio.run(run())

    assert len(repository.list_calls) == 5
    assert stack.sleep.delays == [1.0, 2.0, 4.0]
    assert view.status is FetchStatus.ERROR
    assert view.error is not None
    assert view.error.tag == "network_error"
    assert len(view.records) == 20


def test_explicit_load_more_recovers_after_failed_backfill() -> None:
    repository = InMemoryMealRepository(meals=make_meals(45, calories=100.0))
    stack = build_stack(repository)
    service = stack.collection_service

    async def run() -> CollectionView:
        await service.load_collection()
        repository.list_errors = [NetworkError("offline")] * 4
        await service.apply_filters(_calorie_floor("500"))
        await service.wait_idle()
        await service.load_more()
        await service.wait_idle()
        return await service.view()

    view = asyncio.run(run())

    assert len(repository.list_calls) == 7
    assert view.error is None
    assert len(view.records) == 45
    assert not view.has_more


def test_equal_bounds_apply_and_show_nothing() -> None:
    stack = build_stack(InMemoryMealRepository(meals=make_meals(3, calories=500.0)))
    service = stack.collection_service
    bounds = {nutrient: Bound() for nutrient in NutrientField}
    bounds[NutrientField.CALORIES] = Bound(greater_than="500", less_than="500")

    async def run() -> CollectionView:
        await service.load_collection()
        return await service.apply_filters(FilterSpec(bounds=bounds))

    view = asyncio.run(run())

    assert view.visible == []
    assert len(view.records) == 3
    assert view.filters.bound_for(NutrientField.CALORIES).less_than == "500"
