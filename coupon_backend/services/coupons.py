from __future__ import annotations

import secrets
from collections.abc import Iterable

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from coupon_backend.models.coupon import Coupon

CODE_MAX_LEN = 64


def generate_coupon_code(prefix: str = "CPN") -> str:
    clean = (prefix or "").strip().upper()
    token = secrets.token_hex(4).upper()
    return f"{clean}-{token}" if clean else token


async def list_unclaimed_coupons(session: AsyncSession) -> list[Coupon]:
    result = await session.execute(select(Coupon).where(Coupon.is_claimed.is_(False)).order_by(Coupon.id))
    return list(result.scalars().all())


async def find_claim_by_identity(session: AsyncSession, identity: str) -> Coupon | None:
    result = await session.execute(
        select(Coupon)
        .where(Coupon.claimed_by == identity, Coupon.is_claimed.is_(True))
        .order_by(Coupon.id)
        .limit(1)
    )
    return result.scalars().first()


async def claim_next_coupon(session: AsyncSession, identity: str) -> Coupon | None:
    """
    Flip the lowest-id unclaimed coupon to claimed in a single UPDATE ... RETURNING.

    On Postgres the row picker locks with SKIP LOCKED so concurrent claimers land on
    different rows; sqlite ignores the locking clause and serializes writers instead.
    The outer ``is_claimed = false`` predicate keeps a row from being claimed twice
    even when the subquery result is stale.

    Does not commit; the caller owns the transaction.
    """
    candidate = aliased(Coupon, name="candidate")
    next_unclaimed = (
        select(candidate.id)
        .where(candidate.is_claimed.is_(False))
        .order_by(candidate.id)
        .limit(1)
        .with_for_update(skip_locked=True)
        .scalar_subquery()
    )
    stmt = (
        update(Coupon)
        .where(Coupon.id == next_unclaimed, Coupon.is_claimed.is_(False))
        .values(is_claimed=True, claimed_by=identity, claimed_at=func.now())
        .returning(Coupon)
        .execution_options(synchronize_session="fetch")
    )
    result = await session.execute(stmt)
    return result.scalars().first()


async def provision_coupons(session: AsyncSession, codes: Iterable[str]) -> list[Coupon]:
    """Insert unclaimed coupons for the given codes, skipping blanks and codes already stored."""
    wanted: list[str] = []
    seen: set[str] = set()
    for raw in codes:
        code = (raw or "").strip()
        if not code or code in seen:
            continue
        if len(code) > CODE_MAX_LEN:
            raise ValueError(f"Coupon code too long (max {CODE_MAX_LEN}): {code[:16]}...")
        seen.add(code)
        wanted.append(code)
    if not wanted:
        return []

    existing = set((await session.execute(select(Coupon.code).where(Coupon.code.in_(wanted)))).scalars().all())
    created = [Coupon(code=code, is_claimed=False) for code in wanted if code not in existing]
    if not created:
        return []

    try:
        session.add_all(created)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    return created


async def coupon_stats(session: AsyncSession) -> dict[str, int]:
    total = (await session.execute(select(func.count(Coupon.id)))).scalar_one()
    claimed = (await session.execute(select(func.count(Coupon.id)).where(Coupon.is_claimed.is_(True)))).scalar_one()
    return {"total": int(total), "claimed": int(claimed), "unclaimed": int(total) - int(claimed)}
