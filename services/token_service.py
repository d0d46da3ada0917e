import secrets
import hashlib
from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from typing import Callable, Optional
from jose import jwt, JWTError
from core.config import Settings


ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class TokenError(Exception):
    """Base class for refresh/access token verification failures."""


class TokenInvalidError(TokenError):
    """Malformed token, bad signature, wrong type or missing claims."""


class TokenExpiredError(TokenError):
    """Signature is valid but the embedded expiry has passed."""


@dataclass(frozen=True)
class TokenConfig:
    """
    Signing configuration, built once at startup and handed to the codec.

    Access and refresh tokens use different secrets so one can never be
    verified as the other.
    """
    access_secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenConfig":
        return cls(
            access_secret=settings.SECRET_KEY,
            refresh_secret=settings.REFRESH_SECRET_KEY,
            algorithm=settings.ALGORITHM,
            access_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_ttl=timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    ip: str
    device: str
    token_type: str
    jti: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a token; the only form in which refresh tokens are stored."""
    return hashlib.sha256(token.encode()).hexdigest()


class TokenCodec:
    """
    Signs and verifies access and refresh tokens.

    Pure: verification depends only on the token, the configuration and the
    injected clock, so it needs no locking and performs no I/O.
    """

    def __init__(self, config: TokenConfig, clock: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.clock = clock or utc_now

    def _sign(self, user_id: int, ip: str, device: str, token_type: str) -> IssuedToken:
        now = self.clock()
        if token_type == ACCESS_TOKEN_TYPE:
            secret, ttl = self.config.access_secret, self.config.access_ttl
        else:
            secret, ttl = self.config.refresh_secret, self.config.refresh_ttl

        expires_at = now + ttl
        payload = {
            "sub": str(user_id),
            "ip": ip,
            "device": device,
            "type": token_type,
            # Unique per token: two tokens minted in the same second still differ
            "jti": secrets.token_urlsafe(16),
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, secret, algorithm=self.config.algorithm)
        return IssuedToken(token=token, expires_at=expires_at)

    def sign_access_token(self, user_id: int, ip: str, device: str) -> str:
        """
        Creates a short-lived access token.

        Returns:
            JWT access token string
        """
        return self._sign(user_id, ip, device, ACCESS_TOKEN_TYPE).token

    def sign_refresh_token(self, user_id: int, ip: str, device: str) -> IssuedToken:
        """
        Creates a refresh token.

        Returns:
            IssuedToken with the JWT and its absolute expiry, which the token
            store persists alongside the token hash.
        """
        return self._sign(user_id, ip, device, REFRESH_TOKEN_TYPE)

    def _verify(self, token: str, token_type: str) -> TokenClaims:
        secret = (self.config.access_secret if token_type == ACCESS_TOKEN_TYPE
                  else self.config.refresh_secret)
        try:
            # Expiry is checked below against our own clock
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.config.algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except (JWTError, ValueError) as exc:
            # jose encodes the token before its own error handling, so
            # unencodable input surfaces as UnicodeEncodeError (a ValueError)
            raise TokenInvalidError("Invalid token") from exc

        if payload.get("type") != token_type:
            raise TokenInvalidError("Invalid token type")

        try:
            claims = TokenClaims(
                user_id=int(payload["sub"]),
                ip=str(payload["ip"]),
                device=str(payload["device"]),
                token_type=token_type,
                jti=str(payload["jti"]),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenInvalidError("Invalid token payload") from exc

        if self.clock() > claims.expires_at:
            raise TokenExpiredError("Token expired")

        return claims

    def verify_access_token(self, token: str) -> TokenClaims:
        return self._verify(token, ACCESS_TOKEN_TYPE)

    def verify_refresh_token(self, token: str) -> TokenClaims:
        """
        Verifies signature, type and expiry of a refresh token.

        Raises:
            TokenInvalidError: malformed, forged, or not a refresh token
            TokenExpiredError: well-formed but past its embedded expiry
        """
        return self._verify(token, REFRESH_TOKEN_TYPE)
