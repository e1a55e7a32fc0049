import pytest

from coupon_backend.core.config import settings
from coupon_backend.core.startup_checks import validate_production_settings


def _set_valid_production_baseline(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "environment", "production")
    monkeypatch.setattr(settings, "secure_cookies", True)
    monkeypatch.setattr(settings, "cookie_samesite", "lax")
    monkeypatch.setattr(settings, "cors_origins", ["https://coupons.example.com"])
    monkeypatch.setattr(settings, "cors_allow_credentials", True)
    monkeypatch.setattr(settings, "database_url", "postgresql+asyncpg://u:p@db:5432/coupons")
    monkeypatch.setattr(settings, "claim_policy", "dual_gate")


def test_valid_production_settings_pass(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_valid_production_baseline(monkeypatch)
    validate_production_settings()


def test_production_requires_secure_cookies(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_valid_production_baseline(monkeypatch)
    monkeypatch.setattr(settings, "secure_cookies", False)

    with pytest.raises(RuntimeError) as exc:
        validate_production_settings()

    assert "SECURE_COOKIES must be enabled in production." in str(exc.value)


def test_production_rejects_wildcard_cors_with_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_valid_production_baseline(monkeypatch)
    monkeypatch.setattr(settings, "cors_origins", ["*"])

    with pytest.raises(RuntimeError) as exc:
        validate_production_settings()

    assert "CORS_ORIGINS" in str(exc.value)


def test_production_rejects_sqlite(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_valid_production_baseline(monkeypatch)
    monkeypatch.setattr(settings, "database_url", "sqlite+aiosqlite:///./coupons.db")

    with pytest.raises(RuntimeError) as exc:
        validate_production_settings()

    assert "DATABASE_URL must point to Postgres" in str(exc.value)


def test_production_rejects_invalid_samesite(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_valid_production_baseline(monkeypatch)
    monkeypatch.setattr(settings, "cookie_samesite", "sometimes")

    with pytest.raises(RuntimeError) as exc:
        validate_production_settings()

    assert "COOKIE_SAMESITE must be one of" in str(exc.value)


def test_unknown_claim_policy_fails_everywhere(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "environment", "local")
    monkeypatch.setattr(settings, "claim_policy", "first_come")

    with pytest.raises(RuntimeError) as exc:
        validate_production_settings()

    assert "CLAIM_POLICY" in str(exc.value)


def test_non_production_skips_cookie_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "environment", "local")
    monkeypatch.setattr(settings, "secure_cookies", False)
    monkeypatch.setattr(settings, "claim_policy", "dual_gate")

    validate_production_settings()


def test_invalid_samesite_fails_outside_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "environment", "local")
    monkeypatch.setattr(settings, "claim_policy", "dual_gate")
    monkeypatch.setattr(settings, "cookie_samesite", "Relaxed")

    with pytest.raises(RuntimeError) as exc:
        validate_production_settings()

    assert "COOKIE_SAMESITE must be one of" in str(exc.value)
