import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coupon_backend.core import metrics
from coupon_backend.core.config import settings
from coupon_backend.db.session import get_session
from coupon_backend.schemas.coupon import ClaimResponse, CouponRead
from coupon_backend.services import claims as claims_service
from coupon_backend.services import coupons as coupons_service
from coupon_backend.services.claims import AlreadyClaimedError, ClaimPolicy, CouponsExhaustedError, get_claim_policy

router = APIRouter(tags=["coupons"])
logger = logging.getLogger(__name__)

CLAIM_SUCCESS_MESSAGE = "Coupon claimed successfully!"
_STORE_ERRORS = (SQLAlchemyError, OSError)


def set_claim_cookie(response: Response) -> None:
    response.set_cookie(
        settings.claim_cookie_name,
        "true",
        httponly=True,
        secure=bool(settings.secure_cookies),
        samesite=settings.cookie_samesite.strip().lower(),
        max_age=settings.claim_cookie_max_age_seconds,
        path="/",
    )


def _store_failure(operation: str, exc: Exception) -> HTTPException:
    metrics.record_store_error()
    logger.exception("coupon_store_failed", extra={"operation": operation, "error": str(exc)})
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal Server Error")


@router.get("/coupons", response_model=list[CouponRead])
async def list_coupons(session: AsyncSession = Depends(get_session)) -> list[CouponRead]:
    try:
        coupons = await coupons_service.list_unclaimed_coupons(session)
    except _STORE_ERRORS as exc:
        raise _store_failure("list_coupons", exc) from exc
    return [CouponRead.model_validate(coupon) for coupon in coupons]


@router.post("/claim", response_model=ClaimResponse)
async def claim_coupon(
    request: Request,
    response: Response,
    session: AsyncSession = Depends(get_session),
    policy: ClaimPolicy = Depends(get_claim_policy),
) -> ClaimResponse:
    attempt = claims_service.claim_attempt_from_request(request)
    try:
        coupon = await policy.claim(session, attempt)
    except AlreadyClaimedError as exc:
        metrics.record_claim_rejected(exc.reason)
        logger.info("claim_rejected", extra={"identity": attempt.identity, "reason": exc.reason})
        raise
    except CouponsExhaustedError:
        metrics.record_claims_exhausted()
        logger.info("coupons_exhausted", extra={"identity": attempt.identity})
        raise
    except _STORE_ERRORS as exc:
        raise _store_failure("claim_coupon", exc) from exc

    set_claim_cookie(response)
    metrics.record_claim_succeeded()
    logger.info(
        "coupon_claimed",
        extra={"identity": attempt.identity, "coupon_id": coupon.id, "claim_policy": policy.name},
    )
    return ClaimResponse(message=CLAIM_SUCCESS_MESSAGE, coupon=CouponRead.model_validate(coupon))
