from coupon_backend.middleware.request_log import RequestLoggingMiddleware
from coupon_backend.middleware.security import SecurityHeadersMiddleware

__all__ = ["RequestLoggingMiddleware", "SecurityHeadersMiddleware"]
