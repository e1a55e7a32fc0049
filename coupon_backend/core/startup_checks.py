from __future__ import annotations

import logging

from coupon_backend.core.config import settings

logger = logging.getLogger(__name__)

_VALID_POLICIES = {"dual_gate", "serialized"}
_VALID_SAMESITE = {"lax", "strict", "none"}


def _append_if(problems: list[str], *, condition: bool, message: str) -> None:
    if condition:
        problems.append(message)


def _validate_cookie_settings(problems: list[str]) -> None:
    samesite = (settings.cookie_samesite or "").strip().lower()
    _append_if(
        problems,
        condition=samesite == "none" and not bool(settings.secure_cookies),
        message="COOKIE_SAMESITE=none requires SECURE_COOKIES=1.",
    )
    _append_if(
        problems,
        condition=not bool(settings.secure_cookies),
        message="SECURE_COOKIES must be enabled in production.",
    )


def _validate_cors_settings(problems: list[str]) -> None:
    origins = [str(o).strip() for o in settings.cors_origins or []]
    _append_if(
        problems,
        condition="*" in origins and bool(settings.cors_allow_credentials),
        message="CORS_ORIGINS cannot contain '*' when CORS_ALLOW_CREDENTIALS is enabled.",
    )


def _validate_database_settings(problems: list[str]) -> None:
    _append_if(
        problems,
        condition=settings.sqlalchemy_url().startswith("sqlite"),
        message="DATABASE_URL must point to Postgres in production (sqlite is for local use only).",
    )


def validate_claim_policy() -> None:
    policy = (settings.claim_policy or "").strip().lower()
    if policy not in _VALID_POLICIES:
        raise RuntimeError(f"CLAIM_POLICY must be one of: {' | '.join(sorted(_VALID_POLICIES))}.")


def validate_cookie_samesite() -> None:
    # Starlette rejects any other value only when the cookie is written, after the claim commits.
    samesite = (settings.cookie_samesite or "").strip().lower()
    if samesite not in _VALID_SAMESITE:
        raise RuntimeError("COOKIE_SAMESITE must be one of: lax | strict | none.")


def validate_production_settings() -> None:
    """
    Fail fast on insecure defaults when running in production.

    The claim cookie is an abuse-prevention signal, so production must never
    send it over plain HTTP or to arbitrary origins.
    """
    validate_claim_policy()
    validate_cookie_samesite()
    if not settings.is_production:
        return

    problems: list[str] = []
    _validate_cookie_settings(problems)
    _validate_cors_settings(problems)
    _validate_database_settings(problems)

    if problems:
        raise RuntimeError("Production configuration checks failed:\n- " + "\n- ".join(problems))
    logger.info("production_settings_validated")
