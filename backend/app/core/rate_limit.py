from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from app.core.config import get_settings


settings = get_settings()

STAFF_HEADER = "x-staff-id"


def user_or_ip_key(request: Request) -> str:
    staff_id = request.headers.get(STAFF_HEADER)
    if staff_id:
        return f"staff:{staff_id}"
    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_remote_address,
    headers_enabled=True,
    enabled=settings.rate_limit_enabled,
)
