from slowapi import Limiter
from slowapi.util import get_remote_address
from fastapi import Request
from core.config import settings
from services.token_service import TokenError


def get_user_id(request: Request):
    """
    Rate-limit key: the user id of a valid access token, else the client address.
    """
    header = request.headers.get("Authorization")
    codec = getattr(request.app.state, "token_codec", None)
    if header and header.startswith("Bearer ") and codec is not None:
        try:
            claims = codec.verify_access_token(header[len("Bearer "):])
            return f"user:{claims.user_id}"
        except TokenError:
            pass

    return get_remote_address(request)

limiter = Limiter(
    key_func=get_user_id,
    default_limits=["200/hour"],
    enabled=settings.ENV != "testing"
)
