"""
SQLAlchemy ORM models.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    String,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, relationship

from connectors.encryption import decrypt_token, encrypt_token
from utils.timeutils import utcnow


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    user_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    display_name = Column(String(128))
    magic_link_token = Column(Text)
    magic_link_expires_at = Column(DateTime(timezone=True))
    session_refresh_token = Column(Text)
    timezone = Column(String(64))
    work_day_start = Column(Time)
    work_day_end = Column(Time)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    integrations = relationship(
        "Integration", back_populates="user", cascade="all, delete-orphan"
    )


class Integration(Base):
    """
    One provider's delegated OAuth credential for one user.

    Token columns hold Fernet ciphertext when encryption is enabled; use the
    ``access_token`` / ``refresh_token`` properties, which encrypt on write
    and decrypt on read.
    """

    __tablename__ = "integrations"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_integrations_user_name"),
    )

    integration_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(32), nullable=False)
    _access_token = Column("access_token", Text, nullable=False)
    _refresh_token = Column("refresh_token", Text)
    expires_at = Column(DateTime(timezone=True))
    scopes = Column(JSON, default=list)
    account_email = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow)

    user = relationship("User", back_populates="integrations")

    @property
    def access_token(self) -> str:
        return decrypt_token(self._access_token)

    @access_token.setter
    def access_token(self, value: str) -> None:
        self._access_token = encrypt_token(value)

    @property
    def refresh_token(self):
        return decrypt_token(self._refresh_token)

    @refresh_token.setter
    def refresh_token(self, value) -> None:
        self._refresh_token = encrypt_token(value) if value else None
