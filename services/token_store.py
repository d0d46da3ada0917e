from datetime import datetime, timezone
from typing import Callable, Optional
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from models.refresh_tokens import RefreshToken
from services.errors import StoreUnavailable
from services.token_service import hash_token, utc_now
from utils.logger import get_logger

logger = get_logger(__name__)

DEVICE_INFO_MAX_LENGTH = 512


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RefreshTokenStore:
    """
    Persistence for refresh-token sessions.

    Token values are matched through their SHA-256 digest. Every database
    failure is rolled back and re-raised as ``StoreUnavailable`` so callers
    can tell an outage from a rejected token.
    """

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.clock = clock or utc_now

    def _fail(self, operation: str, exc: SQLAlchemyError):
        self.db.rollback()
        logger.error(
            f"Refresh token store {operation} failed: {exc}",
            extra={"operation": operation, "error_type": type(exc).__name__},
            exc_info=True
        )
        raise StoreUnavailable() from exc

    def create(self, user_id: int, token_value: str, ip: str, device: str,
               expires_at: datetime) -> RefreshToken:
        """
        Inserts a new session record for a freshly issued refresh token.
        """
        record = RefreshToken(
            user_id=user_id,
            token_hash=hash_token(token_value),
            ip_address=ip,
            device_info=device[:DEVICE_INFO_MAX_LENGTH],
            expires_at=expires_at
        )
        try:
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
        except SQLAlchemyError as exc:
            self._fail("create", exc)

        return record

    def find_by_owner_and_value(self, user_id: int, token_value: str) -> RefreshToken | None:
        stmt = select(RefreshToken).where(
            RefreshToken.user_id == user_id,
            RefreshToken.token_hash == hash_token(token_value)
        )
        try:
            return self.db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            self._fail("lookup", exc)

    def rotate(self, record_id: int, expected_value: str, new_value: str,
               expires_at: datetime, ip: str | None = None,
               device: str | None = None) -> RefreshToken | None:
        """
        Swaps the token of one session, compare-and-swap style.

        A single ``UPDATE ... WHERE id = :id AND token_hash = :expected``:
        when several refreshes race on the same token, the database lets
        exactly one of them match the row. The losers, and callers whose
        record was deleted, get ``None``. Never inserts.

        Args:
            record_id: Session row to rotate
            expected_value: Refresh token the caller presented
            new_value: Newly minted refresh token
            expires_at: Expiry of the new token
            ip, device: Client context at rotation time (kept if None)

        Returns:
            The updated record, or None if the swap did not happen
        """
        values = {
            "token_hash": hash_token(new_value),
            "expires_at": expires_at,
            "updated_at": self.clock(),
        }
        if ip is not None:
            values["ip_address"] = ip
        if device is not None:
            values["device_info"] = device[:DEVICE_INFO_MAX_LENGTH]

        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.id == record_id,
                RefreshToken.token_hash == hash_token(expected_value)
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail("rotate", exc)

        if result.rowcount != 1:
            logger.warning(
                "Refresh token rotation lost or target missing",
                extra={"record_id": record_id}
            )
            return None

        record = self.db.get(RefreshToken, record_id)
        if record is not None:
            # The identity map may still hold the pre-rotation row
            self.db.refresh(record)
        return record

    def is_expired(self, record: RefreshToken) -> bool:
        return self.clock() > as_utc(record.expires_at)

    def delete_expired(self) -> int:
        """
        Removes sessions whose expiry has passed. Refresh rejects them anyway,
        this only keeps the table small.

        Returns:
            Number of rows deleted
        """
        stmt = delete(RefreshToken).where(RefreshToken.expires_at < self.clock())
        try:
            result = self.db.execute(stmt.execution_options(synchronize_session=False))
            self.db.commit()
        except SQLAlchemyError as exc:
            self._fail("purge", exc)

        if result.rowcount:
            logger.info("Purged expired refresh tokens", extra={"count": result.rowcount})
        return result.rowcount
