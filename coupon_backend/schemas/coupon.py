from datetime import datetime

from pydantic import BaseModel, ConfigDict


class CouponRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    is_claimed: bool
    claimed_by: str | None = None
    claimed_at: datetime | None = None
    created_at: datetime | None = None


class ClaimResponse(BaseModel):
    message: str
    coupon: CouponRead
