"""
RevokedToken model: append-only list of tokens that must no longer
authenticate, whatever their signature and expiry say.
Fields:
- token_digest (primary key, SHA-256 of the token string)
- token
- revoked_at

Rows are never deleted. Entries whose token has passed its natural expiry
could be pruned; nothing does so yet.
"""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func

from models.base_model import Base


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    token_digest = Column(String(64), primary_key=True)
    token = Column(Text, nullable=False)
    revoked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<RevokedToken digest={self.token_digest[:12]}>"
