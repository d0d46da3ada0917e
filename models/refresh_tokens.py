from core.database import Base
from sqlalchemy import Column, DateTime, String, Integer, ForeignKey, Index
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin, UpdatedAtMixin

class RefreshToken(Base, CreatedAtMixin, UpdatedAtMixin):
    """
    One row per refresh-token session (one per login/device).

    The row is created when a token pair is issued and rewritten in place on
    every successful refresh: ``token_hash`` and ``expires_at`` are swapped
    for the new token's, so an old token value stops matching. Only the
    SHA-256 of the token is stored. Rows past ``expires_at`` are dead and are
    rejected at refresh time.
    """
    __tablename__ = "refresh_tokens"
    __table_args__ = (
        Index("ix_refresh_tokens_user_token", "user_id", "token_hash"),
    )

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="refresh_tokens")

    token_hash = Column(String(64), nullable=False, unique=True)
    ip_address = Column(String(64), nullable=False)
    device_info = Column(String(512), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
