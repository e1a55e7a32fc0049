from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Protocol

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_backend.core.config import settings
from coupon_backend.models.coupon import Coupon
from coupon_backend.services import coupons as coupons_service


ALREADY_CLAIMED_MESSAGE = "You've already claimed a coupon. Try again later."
EXHAUSTED_MESSAGE = "No more coupons available"


class ClaimError(Exception):
    status_code = 400
    code = "claim_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AlreadyClaimedError(ClaimError):
    status_code = 429
    code = "already_claimed"

    def __init__(self, reason: str) -> None:
        super().__init__(ALREADY_CLAIMED_MESSAGE)
        self.reason = reason


class CouponsExhaustedError(ClaimError):
    status_code = 400
    code = "coupons_exhausted"

    def __init__(self) -> None:
        super().__init__(EXHAUSTED_MESSAGE)


@dataclass(frozen=True)
class ClaimAttempt:
    identity: str
    has_claim_cookie: bool


def resolve_identity(request: Request) -> str:
    # Taken verbatim: proxy chains and spoofed headers are not normalized.
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded
    return request.client.host if request.client else "anon"


def has_claim_cookie(request: Request) -> bool:
    return bool(request.cookies.get(settings.claim_cookie_name))


def claim_attempt_from_request(request: Request) -> ClaimAttempt:
    return ClaimAttempt(identity=resolve_identity(request), has_claim_cookie=has_claim_cookie(request))


class ClaimPolicy(Protocol):
    name: str

    async def claim(self, session: AsyncSession, attempt: ClaimAttempt) -> Coupon:
        """Return the coupon awarded to ``attempt`` or raise a ``ClaimError``."""


class DualGateClaimPolicy:
    """
    Cookie gate, then identity gate, then the atomic allocator.

    Each step is its own statement with no transaction spanning them, so two
    simultaneous requests from one identity can both pass the identity gate.
    """

    name = "dual_gate"

    def _check_cookie(self, attempt: ClaimAttempt) -> None:
        if attempt.has_claim_cookie:
            raise AlreadyClaimedError("cookie")

    async def _check_identity(self, session: AsyncSession, attempt: ClaimAttempt) -> None:
        if await coupons_service.find_claim_by_identity(session, attempt.identity) is not None:
            raise AlreadyClaimedError("identity")

    async def _allocate(self, session: AsyncSession, attempt: ClaimAttempt) -> Coupon:
        coupon = await coupons_service.claim_next_coupon(session, attempt.identity)
        if coupon is None:
            raise CouponsExhaustedError()
        await session.commit()
        return coupon

    async def claim(self, session: AsyncSession, attempt: ClaimAttempt) -> Coupon:
        self._check_cookie(attempt)
        try:
            await self._check_identity(session, attempt)
            # End the read so the allocator runs as an independent statement.
            await session.commit()
            return await self._allocate(session, attempt)
        except Exception:
            await session.rollback()
            raise


def _is_postgres(session: AsyncSession) -> bool:
    return session.get_bind().dialect.name == "postgresql"


def _identity_lock_id(identity: str) -> int:
    digest = hashlib.blake2b(identity.encode("utf-8"), digest_size=8).digest()
    return int(int.from_bytes(digest, "big", signed=False) % (2**63 - 1))


class SerializedClaimPolicy(DualGateClaimPolicy):
    """
    Identity check and allocation in one transaction.

    On Postgres the transaction first takes an advisory lock keyed by the
    identity, so concurrent requests from the same identity run one at a time
    and the second one sees the first one's claim.
    """

    name = "serialized"

    async def claim(self, session: AsyncSession, attempt: ClaimAttempt) -> Coupon:
        self._check_cookie(attempt)
        try:
            if _is_postgres(session):
                await session.execute(
                    text("SELECT pg_advisory_xact_lock(:id)"), {"id": _identity_lock_id(attempt.identity)}
                )
            await self._check_identity(session, attempt)
            return await self._allocate(session, attempt)
        except Exception:
            await session.rollback()
            raise


_POLICIES: dict[str, ClaimPolicy] = {
    DualGateClaimPolicy.name: DualGateClaimPolicy(),
    SerializedClaimPolicy.name: SerializedClaimPolicy(),
}


def get_claim_policy() -> ClaimPolicy:
    """FastAPI dependency returning the configured claim policy."""
    key = (settings.claim_policy or "").strip().lower()
    try:
        return _POLICIES[key]
    except KeyError:
        raise RuntimeError(f"Unknown claim policy: {settings.claim_policy!r}") from None
