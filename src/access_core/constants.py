"""
Application constants and enums.
"""

from enum import Enum


class Roles(str, Enum):
    ADMIN = "Admin"
    RECEPTION = "Reception"
    SECURITY = "Security"
    EMPLOYEE = "Employee"

    @classmethod
    def is_admin(cls, role: str) -> bool:
        return role == cls.ADMIN.value

    @classmethod
    def can_manage_keys(cls, role: str) -> bool:
        return role in {cls.ADMIN.value, cls.SECURITY.value}

    @classmethod
    def all_values(cls) -> set:
        return {member.value for member in cls}


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class VisitorStatus(str, Enum):
    PRE_REGISTERED = "pre-registered"
    APPROVED = "approved"
    REJECTED = "rejected"
    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"

    @classmethod
    def all_values(cls) -> set:
        return {member.value for member in cls}


# Statuses reachable through a plain visitor update; the rest need a transition.
VISITOR_UPDATABLE_STATUSES = {
    VisitorStatus.PRE_REGISTERED.value,
    VisitorStatus.APPROVED.value,
    VisitorStatus.REJECTED.value,
}


class ShipmentStatus(str, Enum):
    RECEIVED = "received"
    IN_TRANSIT = "in-transit"
    DELIVERED = "delivered"

    @classmethod
    def all_values(cls) -> set:
        return {member.value for member in cls}


class ShipmentType(str, Enum):
    PACKAGE = "Package"
    DOCUMENT = "Document"
    PALLET = "Pallet"
    OTHER = "Other"


class KeyStatus(str, Enum):
    AVAILABLE = "available"
    CHECKED_OUT = "checked-out"

    @classmethod
    def all_values(cls) -> set:
        return {member.value for member in cls}


class AccessLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @classmethod
    def all_values(cls) -> set:
        return {member.value for member in cls}


ALERT_ACCESS_LEVELS = {AccessLevel.HIGH.value, AccessLevel.CRITICAL.value}


class NotificationType(str, Enum):
    VISITOR_ARRIVAL = "visitor_arrival"
    VISITOR_CHECKOUT = "visitor_checkout"
    VISITOR_APPROVAL_REQUEST = "visitor_approval_request"
    SHIPMENT_RECEIVED = "shipment_received"
    SHIPMENT_DELIVERED = "shipment_delivered"
    KEY_CHECKOUT_ALERT = "key_checkout_alert"
    KEY_RETURNED = "key_returned"
    KEY_OVERDUE = "key_overdue"


class NotificationChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"
    SLACK = "slack"
    TEAMS = "teams"


DEFAULT_NOTIFICATION_PREFERENCES = {
    NotificationChannel.EMAIL.value: True,
    NotificationChannel.SMS.value: False,
    NotificationChannel.SLACK.value: False,
    NotificationChannel.TEAMS.value: False,
}

PASSWORD_RESET_EXPIRES_SECONDS = 3600
SENTIMENT_NEGATIVE_THRESHOLD = 0.7
NEGATIVE_SENTIMENT_CONCERN = "Highly negative sentiment detected"
MAX_PHOTO_BYTES = 5 * 1024 * 1024
