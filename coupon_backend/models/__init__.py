from coupon_backend.db.base import Base  # noqa: F401
from coupon_backend.models.coupon import Coupon  # noqa: F401
