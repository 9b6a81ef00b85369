from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from toil_engine.db import get_session
from toil_engine.main import app
from toil_engine.models import SQLModel
from toil_engine.services.notifier import ChangeNotifier, set_notifier
from toil_engine.services.reconciler import ToggleGuard, set_toggle_guard
from toil_engine.services.user_directory import InMemoryUserDirectory, set_user_directory

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """A fresh in-memory ledger database per test."""
    _engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def user_directory() -> Iterator[InMemoryUserDirectory]:
    directory = InMemoryUserDirectory()
    set_user_directory(directory)
    yield directory
    set_user_directory(InMemoryUserDirectory())


@pytest.fixture
def notifier() -> Iterator[ChangeNotifier]:
    _notifier = ChangeNotifier()
    set_notifier(_notifier)
    yield _notifier
    set_notifier(ChangeNotifier())


@pytest.fixture(autouse=True)
def _isolated_process_state(user_directory: InMemoryUserDirectory, notifier: ChangeNotifier) -> Iterator[None]:
    """Every test starts with an empty directory, no subscribers and no debounce."""
    set_toggle_guard(ToggleGuard(debounce_ms=0))
    yield
    set_toggle_guard(None)
