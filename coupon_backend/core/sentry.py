from __future__ import annotations

from coupon_backend.core.config import settings


def init_sentry() -> bool:
    if not (settings.sentry_dsn or "").strip():
        return False

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=settings.app_version,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        integrations=[FastApiIntegration(), SqlalchemyIntegration()],
        attach_stacktrace=True,
        # Requester IPs are the claim identity; keep them out of Sentry events.
        send_default_pii=False,
    )
    return True
