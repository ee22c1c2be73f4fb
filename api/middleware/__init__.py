from .auth import get_current_user_id
from .logging import RequestLoggingMiddleware
from .rate_limiting import RateLimitMiddleware

__all__ = ["get_current_user_id", "RequestLoggingMiddleware", "RateLimitMiddleware"]
