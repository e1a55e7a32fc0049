import asyncio
import os
from collections.abc import Generator
from typing import Iterable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

# Keep the suite hermetic: no outbound Sentry capture and no Postgres requirement.
os.environ["SENTRY_DSN"] = ""
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CLAIM_POLICY"] = "dual_gate"

from coupon_backend.core import metrics  # noqa: E402
from coupon_backend.db.base import Base  # noqa: E402
from coupon_backend.db.session import get_session  # noqa: E402
from coupon_backend.main import app  # noqa: E402
from coupon_backend.models.coupon import Coupon  # noqa: E402


@pytest.fixture(scope="module")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_metrics() -> Generator[None, None, None]:
    metrics.reset()
    yield
    metrics.reset()


def make_session_factory(url: str = "sqlite+aiosqlite:///:memory:", **engine_kwargs) -> async_sessionmaker:
    engine = create_async_engine(url, future=True, **engine_kwargs)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    return SessionLocal


def seed_coupons(session_factory: async_sessionmaker, codes: Iterable[str]) -> None:
    async def _seed() -> None:
        async with session_factory() as session:
            session.add_all([Coupon(code=code) for code in codes])
            await session.commit()

    asyncio.run(_seed())


@pytest.fixture
def session_factory() -> async_sessionmaker:
    return make_session_factory()


@pytest.fixture
def client(session_factory: async_sessionmaker) -> Generator[TestClient, None, None]:
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    test_client = TestClient(app)
    yield test_client
    test_client.close()
    app.dependency_overrides.clear()


class BrokenSession:
    """Stand-in session whose every statement fails like an unreachable database."""

    def __init__(self) -> None:
        self.rolled_back = False

    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("connection refused"))

    async def commit(self) -> None:
        return None

    async def rollback(self) -> None:
        self.rolled_back = True

    def get_bind(self):
        raise RuntimeError("no bind")


@pytest.fixture
def seed(session_factory: async_sessionmaker):
    def _seed(*codes: str) -> None:
        seed_coupons(session_factory, codes)

    return _seed


@pytest.fixture
def broken_client() -> Generator[TestClient, None, None]:
    async def override_get_session():
        yield BrokenSession()

    app.dependency_overrides[get_session] = override_get_session
    test_client = TestClient(app)
    yield test_client
    test_client.close()
    app.dependency_overrides.clear()
