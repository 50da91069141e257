"""ASGI entrypoint for the meal sync API."""

from meal_sync.api.app import create_app
from meal_sync.containers import build_container

app = create_app(build_container())
