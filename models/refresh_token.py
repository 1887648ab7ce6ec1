"""
RefreshToken model: one row per honourable refresh token in a user's registry.
Fields:
- token: the exact signed string handed to the client
- user_id: owner (rows are deleted with the user)
- position: insertion order within the owner's registry (FIFO eviction key)
- created_at, expires_at: retention window, independent of the token's own exp
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token = Column(String(1024), nullable=False, unique=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        Index("ix_refresh_tokens_user_position", "user_id", "position"),
    )

    def __repr__(self):
        return f"<RefreshToken user={self.user_id} position={self.position}>"
