"""
api.deps
========

FastAPI dependency providers.

`get_store` opens one session per request so every handler runs its
workflow call inside its own unit of work; `get_notifier` is a process-wide
singleton.  Tests override both through ``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Iterator

from fastapi import Depends

from scholarflow.db import SessionLocal
from scholarflow.notifications import LogNotifier, Notifier
from scholarflow.settings import Settings, settings
from scholarflow.store import Store
from scholarflow.workflow import WorkflowService


def get_store() -> Iterator[Store]:
    """Request-scoped repository; the session is closed when the response is sent."""
    with Store(SessionLocal()) as store:
        yield store


@lru_cache
def get_notifier() -> Notifier:
    """Singleton notifier (persists across requests)."""
    return LogNotifier()


@lru_cache
def get_settings() -> Settings:
    """Return application settings."""
    return settings


def get_workflow(
    store: Store = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
    config: Settings = Depends(get_settings),
) -> WorkflowService:
    return WorkflowService(store, notifier=notifier, config=config)
