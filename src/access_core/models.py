"""
SQLAlchemy ORM models shared by the access services.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from .constants import (
    DEFAULT_NOTIFICATION_PREFERENCES,
    AccessLevel,
    KeyStatus,
    Roles,
    ShipmentStatus,
    ShipmentType,
    TokenKind,
    UserStatus,
    VisitorStatus,
)
from .security import decrypt_string, encrypt_string, hash_password, verify_password


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_check(column: str, values: set[str], name: str) -> CheckConstraint:
    quoted = ", ".join(f"'{value}'" for value in sorted(values))
    return CheckConstraint(f"{column} IN ({quoted})", name=name)


class JSONBType(TypeDecorator):
    """
    JSONB on PostgreSQL, TEXT with JSON serialization everywhere else.

    This allows tests to run with SQLite while production uses PostgreSQL JSONB.
    """

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        return json.dumps(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        if isinstance(value, str):
            return json.loads(value)
        return value

    @property
    def python_type(self):
        return object


JSONB_TYPE = JSONBType()


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_role_status", "role", "status"),
        Index("ix_users_department", "department"),
        _enum_check("role", Roles.all_values(), "ck_users_role"),
        _enum_check("status", {s.value for s in UserStatus}, "ck_users_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default=Roles.EMPLOYEE.value)
    department: Mapped[str | None] = mapped_column(String(120), nullable=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=UserStatus.ACTIVE.value
    )
    phone_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    profile_picture: Mapped[str | None] = mapped_column(String(512), nullable=True)
    notification_preferences: Mapped[dict[str, bool] | None] = mapped_column(
        JSONB_TYPE, nullable=True, default=lambda: dict(DEFAULT_NOTIFICATION_PREFERENCES)
    )
    slack_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    teams_user_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_verification_token: Mapped[str | None] = mapped_column(
        String(128), nullable=True, index=True
    )
    password_reset_token: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    tokens: Mapped[list[UserToken]] = relationship(
        "UserToken", back_populates="user", cascade="all, delete-orphan"
    )

    @hybrid_property
    def name(self) -> str:
        value = decrypt_string(self.name_encrypted)
        return value or ""

    @name.setter
    def name(self, value: str) -> None:
        self.name_encrypted = encrypt_string((value or "").strip())

    @hybrid_property
    def phone(self) -> str | None:
        return decrypt_string(self.phone_encrypted)

    @phone.setter
    def phone(self, value: str | None) -> None:
        self.phone_encrypted = encrypt_string(value.strip()) if value else None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    def set_password(self, password: str) -> None:
        if password is None:
            raise ValueError("password must not be None")
        self.password_hash = hash_password(password)

    def check_password(self, password: str) -> bool:
        return verify_password(password, self.password_hash)

    def preferences(self) -> dict[str, bool]:
        merged = dict(DEFAULT_NOTIFICATION_PREFERENCES)
        merged.update(self.notification_preferences or {})
        return merged


class UserToken(Base):
    """One row per currently valid bearer token (access or refresh)."""

    __tablename__ = "user_tokens"
    __table_args__ = (
        Index("ix_user_tokens_user_kind", "user_id", "kind"),
        _enum_check("kind", {k.value for k in TokenKind}, "ck_user_tokens_kind"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, default=TokenKind.ACCESS.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    user: Mapped[User] = relationship("User", back_populates="tokens")


class Visitor(Base):
    __tablename__ = "visitors"
    __table_args__ = (
        Index("ix_visitors_host_status", "host_id", "status"),
        Index("ix_visitors_visit_date", "visit_date"),
        _enum_check("status", VisitorStatus.all_values(), "ck_visitors_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name_encrypted: Mapped[str] = mapped_column(Text, nullable=False)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    host_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    purpose: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=VisitorStatus.PRE_REGISTERED.value
    )
    visit_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    check_in_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    check_out_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    id_scan_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_analysis: Mapped[dict[str, Any] | None] = mapped_column(JSONB_TYPE, nullable=True)
    badge_printed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    host: Mapped[User | None] = relationship("User", foreign_keys=[host_id])

    @hybrid_property
    def name(self) -> str:
        value = decrypt_string(self.name_encrypted)
        return value or ""

    @name.setter
    def name(self, value: str) -> None:
        self.name_encrypted = encrypt_string((value or "").strip())

    @hybrid_property
    def email(self) -> str | None:
        return decrypt_string(self.email_encrypted)

    @email.setter
    def email(self, value: str | None) -> None:
        self.email_encrypted = encrypt_string(value.strip().lower()) if value else None

    @hybrid_property
    def phone(self) -> str | None:
        return decrypt_string(self.phone_encrypted)

    @phone.setter
    def phone(self, value: str | None) -> None:
        self.phone_encrypted = encrypt_string(value.strip()) if value else None


class Shipment(Base):
    __tablename__ = "shipments"
    __table_args__ = (
        Index("ix_shipments_recipient_status", "recipient_id", "status"),
        Index("ix_shipments_received_time", "received_time"),
        _enum_check("status", ShipmentStatus.all_values(), "ck_shipments_status"),
        _enum_check("type", {t.value for t in ShipmentType}, "ck_shipments_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tracking_number: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    carrier: Mapped[str] = mapped_column(String(120), nullable=False)
    sender: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=ShipmentStatus.RECEIVED.value
    )
    received_time: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    delivered_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    handling_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    weight: Mapped[float | None] = mapped_column(Float, nullable=True)
    dimensions: Mapped[dict[str, float] | None] = mapped_column(JSONB_TYPE, nullable=True)
    photo_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    signature_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    recipient: Mapped[User | None] = relationship("User", foreign_keys=[recipient_id])
    created_by: Mapped[User | None] = relationship("User", foreign_keys=[created_by_id])
    updated_by: Mapped[User | None] = relationship("User", foreign_keys=[updated_by_id])


class Key(Base):
    __tablename__ = "access_keys"
    __table_args__ = (
        Index("ix_access_keys_status", "status"),
        Index("ix_access_keys_assigned_to", "assigned_to_id"),
        _enum_check("status", KeyStatus.all_values(), "ck_access_keys_status"),
        _enum_check("access_level", AccessLevel.all_values(), "ck_access_keys_access_level"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key_name: Mapped[str] = mapped_column(String(255), nullable=False)
    key_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    area: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=KeyStatus.AVAILABLE.value
    )
    assigned_to_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    checkout_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    return_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expected_return_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    access_level: Mapped[str] = mapped_column(
        String(16), nullable=False, default=AccessLevel.LOW.value
    )
    authorized_roles: Mapped[list[str] | None] = mapped_column(
        JSONB_TYPE, nullable=True, default=list
    )
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    updated_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    assigned_to: Mapped[User | None] = relationship("User", foreign_keys=[assigned_to_id])
    created_by: Mapped[User | None] = relationship("User", foreign_keys=[created_by_id])
    updated_by: Mapped[User | None] = relationship("User", foreign_keys=[updated_by_id])

    @property
    def is_checked_out(self) -> bool:
        return self.status == KeyStatus.CHECKED_OUT.value
