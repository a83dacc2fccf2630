"""
Pydantic schemas for request validation.

Every model forbids unknown fields, so each endpoint only accepts the fields
it is allowed to change.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, EmailStr, Field, validator

from access_core.constants import (
    VISITOR_UPDATABLE_STATUSES,
    AccessLevel,
    Roles,
    ShipmentStatus,
    ShipmentType,
    UserStatus,
)
from access_core.validation import validate_password


def _to_naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class RequestModel(BaseModel):
    class Config:
        extra = "forbid"
        use_enum_values = True
        validate_default = True
        str_strip_whitespace = True


class NotificationPreferencesRequest(RequestModel):
    email: bool | None = None
    sms: bool | None = None
    slack: bool | None = None
    teams: bool | None = None


# ==================== AUTH ====================


class LoginRequest(RequestModel):
    email: str = Field(..., min_length=3, pattern=r"^[^@]+@[^@]+\.[^@]+$")
    password: str = Field(..., min_length=1)

    @validator("email")
    def normalize_email(cls, v):
        return v.strip().lower()


class RegisterRequest(RequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str
    role: Roles = Roles.EMPLOYEE
    department: str | None = Field(None, max_length=120)
    phone: str | None = Field(None, max_length=40)

    @validator("email")
    def normalize_email(cls, v):
        return v.lower()

    @validator("password")
    def validate_password_rules(cls, v):
        validate_password(v)
        return v


class ForgotPasswordRequest(RequestModel):
    email: EmailStr

    @validator("email")
    def normalize_email(cls, v):
        return v.lower()


class ResetPasswordRequest(RequestModel):
    token: str = Field(..., min_length=1)
    password: str

    @validator("password")
    def validate_password_rules(cls, v):
        validate_password(v)
        return v


class RefreshTokenRequest(RequestModel):
    refresh_token: str = Field(..., min_length=1)


# ==================== USERS ====================


class CreateUserRequest(RequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str
    role: Roles
    department: str | None = Field(None, max_length=120)
    status: UserStatus = UserStatus.ACTIVE
    phone: str | None = Field(None, max_length=40)
    profile_picture: str | None = None
    notification_preferences: NotificationPreferencesRequest | None = None
    slack_user_id: str | None = None
    teams_user_id: str | None = None

    @validator("email")
    def normalize_email(cls, v):
        return v.lower()

    @validator("password")
    def validate_password_rules(cls, v):
        validate_password(v)
        return v


class UpdateUserRequest(RequestModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    department: str | None = Field(None, max_length=120)
    phone: str | None = Field(None, max_length=40)
    profile_picture: str | None = None
    notification_preferences: NotificationPreferencesRequest | None = None

    @validator("email")
    def normalize_email(cls, v):
        return v.lower() if v else v


class AdminUpdateUserRequest(UpdateUserRequest):
    role: Roles | None = None
    status: UserStatus | None = None


class UpdateProfileRequest(RequestModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    department: str | None = Field(None, max_length=120)
    phone: str | None = Field(None, max_length=40)
    profile_picture: str | None = None
    slack_user_id: str | None = None
    teams_user_id: str | None = None


class ChangePasswordRequest(RequestModel):
    current_password: str = Field(..., min_length=1)
    new_password: str

    @validator("new_password")
    def validate_password_rules(cls, v):
        validate_password(v)
        return v


# ==================== VISITORS ====================


class CreateVisitorRequest(RequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    company: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=40)
    host_id: int
    purpose: str = Field(..., min_length=1)
    visit_date: datetime
    status: str | None = None
    photo_url: str | None = None
    id_scan_url: str | None = None
    notes: str | None = None
    badge_printed: bool = False

    @validator("visit_date")
    def normalize_visit_date(cls, v):
        return _to_naive_utc(v)

    @validator("status")
    def validate_status(cls, v):
        if v is not None and v not in VISITOR_UPDATABLE_STATUSES:
            raise ValueError("status must be one of pre-registered, approved, rejected")
        return v


class UpdateVisitorRequest(RequestModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    company: str | None = Field(None, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=40)
    host_id: int | None = None
    purpose: str | None = Field(None, min_length=1)
    visit_date: datetime | None = None
    status: str | None = None
    photo_url: str | None = None
    id_scan_url: str | None = None
    notes: str | None = None
    badge_printed: bool | None = None

    @validator("visit_date")
    def normalize_visit_date(cls, v):
        return _to_naive_utc(v)

    @validator("status")
    def validate_status(cls, v):
        if v is not None and v not in VISITOR_UPDATABLE_STATUSES:
            raise ValueError(
                "status can only be set to pre-registered, approved or rejected; "
                "use the check-in and check-out endpoints"
            )
        return v


# ==================== SHIPMENTS ====================


class Dimensions(RequestModel):
    length: float | None = Field(None, ge=0)
    width: float | None = Field(None, ge=0)
    height: float | None = Field(None, ge=0)


class CreateShipmentRequest(RequestModel):
    tracking_number: str = Field(..., min_length=1, max_length=128)
    carrier: str = Field(..., min_length=1, max_length=120)
    sender: str = Field(..., min_length=1, max_length=255)
    recipient_id: int
    type: ShipmentType
    received_time: datetime | None = None
    notes: str | None = None
    handling_instructions: str | None = None
    weight: float | None = Field(None, ge=0)
    dimensions: Dimensions | None = None
    photo_url: str | None = None

    @validator("received_time")
    def normalize_received_time(cls, v):
        return _to_naive_utc(v)


class UpdateShipmentRequest(RequestModel):
    tracking_number: str | None = Field(None, min_length=1, max_length=128)
    carrier: str | None = Field(None, min_length=1, max_length=120)
    sender: str | None = Field(None, min_length=1, max_length=255)
    recipient_id: int | None = None
    type: ShipmentType | None = None
    status: ShipmentStatus | None = None
    notes: str | None = None
    handling_instructions: str | None = None
    weight: float | None = Field(None, ge=0)
    dimensions: Dimensions | None = None
    photo_url: str | None = None
    signature_url: str | None = None


class DeliverShipmentRequest(RequestModel):
    signature_url: str | None = None


# ==================== KEYS ====================


class CreateKeyRequest(RequestModel):
    key_name: str = Field(..., min_length=1, max_length=255)
    key_number: str = Field(..., min_length=1, max_length=64)
    area: str = Field(..., min_length=1, max_length=255)
    access_level: AccessLevel = AccessLevel.LOW
    authorized_roles: list[Roles] = Field(default_factory=list)
    location: str | None = Field(None, max_length=255)
    notes: str | None = None


class UpdateKeyRequest(RequestModel):
    key_name: str | None = Field(None, min_length=1, max_length=255)
    key_number: str | None = Field(None, min_length=1, max_length=64)
    area: str | None = Field(None, min_length=1, max_length=255)
    access_level: AccessLevel | None = None
    authorized_roles: list[Roles] | None = None
    location: str | None = Field(None, max_length=255)
    notes: str | None = None


class CheckoutKeyRequest(RequestModel):
    assigned_to: int | None = None
    expected_return_time: datetime | None = None
    notes: str | None = None

    @validator("expected_return_time")
    def normalize_expected_return_time(cls, v):
        return _to_naive_utc(v)
