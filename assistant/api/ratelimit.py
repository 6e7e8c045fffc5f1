"""Rate limiting for assistant chat requests."""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from assistant.config import settings


def user_or_address(request: Request) -> str:
    """Limit per user when the gateway forwarded one, otherwise per client IP."""
    user_id = request.headers.get("X-User-ID", "").strip()
    if user_id:
        return f"user:{user_id}"
    return get_remote_address(request)


limiter = Limiter(key_func=user_or_address)

# Every chat turn may fan out to several vendor calls
CHAT_RATE_LIMIT = settings.chat_rate_limit
