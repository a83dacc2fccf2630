"""
Notification dispatcher.

Renders a per-type subject/message pair and fans it out to every channel the
recipient enabled. Channel failures are logged and never reach the caller.
Call these helpers after the triggering operation's session has closed.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import select

from access_core.constants import NotificationChannel, NotificationType, Roles, UserStatus
from access_core.db import get_session
from access_core.logging_config import LoggerAdapter, get_logger
from access_core.models import User, utcnow
from access_core.services.email_service import PRODUCT_NAME, email_service

logger = get_logger(__name__)

GENERIC_SUBJECT = f"{PRODUCT_NAME} Notification"
GENERIC_MESSAGE = f"You have a new notification from {PRODUCT_NAME}."

TEMPLATES: dict[str, tuple[str, str]] = {
    NotificationType.VISITOR_ARRIVAL.value: (
        "Visitor Arrival Notification",
        "Your visitor {visitor_name} from {company} has arrived at {check_in_time:time} "
        "for {purpose}.",
    ),
    NotificationType.VISITOR_CHECKOUT.value: (
        "Visitor Checkout Notification",
        "Your visitor {visitor_name} from {company} has checked out at {check_out_time:time}.",
    ),
    NotificationType.VISITOR_APPROVAL_REQUEST.value: (
        "Visitor Approval Request",
        "{visitor_name} from {company} has requested a visit on {visit_date:date} at "
        "{visit_date:time} for {purpose}. Please approve or reject this request.",
    ),
    NotificationType.SHIPMENT_RECEIVED.value: (
        "Shipment Received Notification",
        "A shipment from {sender} with tracking number {tracking_number} has been received "
        "and is ready for pickup.",
    ),
    NotificationType.SHIPMENT_DELIVERED.value: (
        "Shipment Delivered Notification",
        "Your shipment with tracking number {tracking_number} has been delivered at "
        "{delivered_time:time}.",
    ),
    NotificationType.KEY_CHECKOUT_ALERT.value: (
        "Key Checkout Alert",
        "{assigned_to_name} has checked out the {key_name} ({key_number}) key at "
        "{checkout_time:time}.",
    ),
    NotificationType.KEY_RETURNED.value: (
        "Key Return Notification",
        "The {key_name} ({key_number}) key has been returned at {return_time:time}.",
    ),
    NotificationType.KEY_OVERDUE.value: (
        "Key Overdue Alert",
        "The {key_name} ({key_number}) key checked out by {assigned_to_name} is overdue for "
        "return. It was expected to be returned by {expected_return_time:datetime}.",
    ),
}

_TIME_FORMATS = {"time": "%H:%M:%S", "date": "%Y-%m-%d", "datetime": "%Y-%m-%d %H:%M"}


class _TemplateValue:
    """Wraps payload values so templates can ask for time/date/datetime renderings."""

    def __init__(self, value: Any):
        self.value = value

    def __format__(self, format_spec: str) -> str:
        if format_spec in _TIME_FORMATS:
            moment = self.value
            if isinstance(moment, str):
                try:
                    moment = datetime.fromisoformat(moment)
                except ValueError:
                    return moment
            if isinstance(moment, datetime):
                return moment.strftime(_TIME_FORMATS[format_spec])
        if self.value is None:
            return "unknown"
        return format(self.value, "" if format_spec in _TIME_FORMATS else format_spec)


class _TemplateData(dict):
    def __missing__(self, key: str) -> _TemplateValue:
        return _TemplateValue(None)


def render_notification(notification_type: str, data: dict[str, Any] | None) -> tuple[str, str]:
    """Return (subject, message) for a notification type, or the generic pair."""
    template = TEMPLATES.get(notification_type)
    if template is None:
        return GENERIC_SUBJECT, GENERIC_MESSAGE
    subject, message = template
    values = _TemplateData({k: _TemplateValue(v) for k, v in (data or {}).items()})
    return subject, message.format_map(values)


@dataclass
class Recipient:
    """Recipient details captured outside the database session."""

    id: int
    name: str
    email: str
    phone: str | None = None
    slack_user_id: str | None = None
    teams_user_id: str | None = None
    preferences: dict[str, bool] = field(default_factory=dict)

    @classmethod
    def from_user(cls, user: User) -> Recipient:
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            slack_user_id=user.slack_user_id,
            teams_user_id=user.teams_user_id,
            preferences=user.preferences(),
        )


@dataclass
class NotificationRecord:
    type: str
    recipient_id: int
    subject: str
    message: str
    sent_at: datetime
    channels: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "recipient_id": self.recipient_id,
            "subject": self.subject,
            "message": self.message,
            "sent_at": self.sent_at.isoformat(),
            "channels": list(self.channels),
        }


def _send_email(recipient: Recipient, subject: str, message: str) -> bool:
    return email_service.send_notification_email(recipient.email, recipient.name, subject, message)


def _send_sms(recipient: Recipient, subject: str, message: str) -> bool:
    if not recipient.phone:
        return False
    logger.info(
        "SMS notification queued", extra={"recipient_id": recipient.id, "notification": message}
    )
    return True


def _send_slack(recipient: Recipient, subject: str, message: str) -> bool:
    if not recipient.slack_user_id:
        return False
    logger.info(
        "Slack notification queued",
        extra={"slack_user_id": recipient.slack_user_id, "notification": message},
    )
    return True


def _send_teams(recipient: Recipient, subject: str, message: str) -> bool:
    if not recipient.teams_user_id:
        return False
    logger.info(
        "Teams notification queued",
        extra={"teams_user_id": recipient.teams_user_id, "notification": message},
    )
    return True


CHANNEL_SENDERS: dict[str, Callable[[Recipient, str, str], bool]] = {
    NotificationChannel.EMAIL.value: _send_email,
    NotificationChannel.SMS.value: _send_sms,
    NotificationChannel.SLACK.value: _send_slack,
    NotificationChannel.TEAMS.value: _send_teams,
}


def dispatch(
    notification_type: str, recipient: Recipient, data: dict[str, Any] | None = None
) -> NotificationRecord:
    """
    Deliver a notification on every channel the recipient enabled.

    Returns a record of what was rendered, whatever each channel's outcome.
    """
    subject, message = render_notification(notification_type, data)
    log = LoggerAdapter(
        logger, {"notification_type": notification_type, "recipient_id": recipient.id}
    )
    delivered: list[str] = []

    for channel, sender in CHANNEL_SENDERS.items():
        if not recipient.preferences.get(channel):
            continue
        try:
            if sender(recipient, subject, message):
                delivered.append(channel)
        except Exception as exc:
            log.error(f"Error sending {channel} notification: {exc}")

    log.info("Notification dispatched", extra={"channels": delivered})
    return NotificationRecord(
        type=notification_type,
        recipient_id=recipient.id,
        subject=subject,
        message=message,
        sent_at=utcnow(),
        channels=delivered,
    )


def send_notification(
    notification_type: str, recipient_id: int | None, data: dict[str, Any] | None = None
) -> NotificationRecord | None:
    """
    Resolve the recipient and dispatch. Returns None if the user does not exist.
    """
    if recipient_id is None:
        logger.warning("Notification recipient not found", extra={"type": notification_type})
        return None

    with get_session() as session:
        user = session.get(User, recipient_id)
        recipient = Recipient.from_user(user) if user is not None else None

    if recipient is None:
        logger.warning(
            "Notification recipient not found",
            extra={"type": notification_type, "recipient_id": recipient_id},
        )
        return None

    return dispatch(notification_type, recipient, data)


def notify_security_team(
    notification_type: str, data: dict[str, Any] | None = None
) -> list[NotificationRecord]:
    """Send a notification to every active Security user."""
    with get_session() as session:
        users = (
            session.execute(
                select(User).where(
                    User.role == Roles.SECURITY.value, User.status == UserStatus.ACTIVE.value
                )
            )
            .scalars()
            .all()
        )
        recipients = [Recipient.from_user(user) for user in users]

    return [dispatch(notification_type, recipient, data) for recipient in recipients]
