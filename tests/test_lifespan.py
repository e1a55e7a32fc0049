import asyncio
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from coupon_backend import main as main_module
from coupon_backend.core.config import settings
from coupon_backend.main import app


def _use_engine(monkeypatch: pytest.MonkeyPatch, url: str) -> AsyncEngine:
    engine = create_async_engine(url, future=True)
    monkeypatch.setattr(main_module, "engine", engine)
    return engine


def test_startup_refuses_unreachable_database(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    engine = _use_engine(monkeypatch, f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'coupons.db'}")
    monkeypatch.setattr(settings, "verify_db_on_startup", True)

    try:
        with pytest.raises(OperationalError):
            with TestClient(app):
                pass
    finally:
        asyncio.run(engine.dispose())


def test_startup_connects_to_reachable_database(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    _use_engine(monkeypatch, f"sqlite+aiosqlite:///{tmp_path / 'coupons.db'}")
    monkeypatch.setattr(settings, "verify_db_on_startup", True)

    with TestClient(app) as client:
        assert client.get("/health").status_code == 200


def test_startup_runs_production_checks(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    engine = _use_engine(monkeypatch, f"sqlite+aiosqlite:///{tmp_path / 'coupons.db'}")
    monkeypatch.setattr(settings, "verify_db_on_startup", False)
    monkeypatch.setattr(settings, "environment", "production")
    monkeypatch.setattr(settings, "secure_cookies", False)

    try:
        with pytest.raises(RuntimeError) as exc:
            with TestClient(app):
                pass
    finally:
        asyncio.run(engine.dispose())

    assert "SECURE_COOKIES must be enabled in production." in str(exc.value)


def test_startup_rejects_invalid_samesite_outside_production(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    engine = _use_engine(monkeypatch, f"sqlite+aiosqlite:///{tmp_path / 'coupons.db'}")
    monkeypatch.setattr(settings, "verify_db_on_startup", False)
    monkeypatch.setattr(settings, "cookie_samesite", "Relaxed")

    try:
        with pytest.raises(RuntimeError) as exc:
            with TestClient(app):
                pass
    finally:
        asyncio.run(engine.dispose())

    assert "COOKIE_SAMESITE" in str(exc.value)
