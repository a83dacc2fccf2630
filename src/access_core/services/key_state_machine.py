"""
Key custody state machine.

Keeps the available/checked-out transitions, their guards and their field
side effects out of the service layer.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from access_core.auth.service import CurrentUser
from access_core.constants import KeyStatus, Roles
from access_core.errors import AuthorizationError, ValidationError
from access_core.models import Key, User, utcnow


class KeyStateError(ValidationError):
    """Raised when a key is not in the state the transition requires."""

    def __init__(self, message: str, current_status: str, event: KeyEvent):
        super().__init__(message)
        self.current_status = current_status
        self.event = event


class KeyEvent(Enum):
    CHECKOUT = "checkout"
    RETURN = "return"


# (source status, event) -> target status
KEY_TRANSITIONS: dict[tuple[str, KeyEvent], str] = {
    (KeyStatus.AVAILABLE.value, KeyEvent.CHECKOUT): KeyStatus.CHECKED_OUT.value,
    (KeyStatus.CHECKED_OUT.value, KeyEvent.RETURN): KeyStatus.AVAILABLE.value,
}

_STATE_ERRORS = {
    KeyEvent.CHECKOUT: "Key is not available for checkout",
    KeyEvent.RETURN: "Key is not checked out",
}


@dataclass
class TransitionContext:
    """Everything a custody transition needs."""

    key: Key
    event: KeyEvent
    actor: CurrentUser
    assignee: User | None = None
    expected_return_time: datetime | None = None
    notes: str | None = None


class KeyCustodyStateMachine:
    def __init__(self):
        self._transition_handlers: dict[KeyEvent, Callable[[TransitionContext], None]] = {
            KeyEvent.CHECKOUT: self._handle_checkout,
            KeyEvent.RETURN: self._handle_return,
        }

    def can_transition(self, current_status: str, event: KeyEvent) -> bool:
        return (current_status, event) in KEY_TRANSITIONS

    def validate_transition(self, context: TransitionContext) -> None:
        """Check the source state first, then the actor's permission."""
        key = context.key
        if not self.can_transition(key.status, context.event):
            raise KeyStateError(_STATE_ERRORS[context.event], key.status, context.event)

        if context.event == KeyEvent.CHECKOUT:
            authorized_roles = key.authorized_roles or []
            if authorized_roles and context.actor.role not in authorized_roles:
                raise AuthorizationError("You are not authorized to checkout this key")
            if context.assignee is None:
                raise ValidationError("Assigned user not found")
            if context.assignee.id != context.actor.id and not Roles.can_manage_keys(
                context.actor.role
            ):
                raise AuthorizationError("Only Admin or Security can assign keys to other users")

    def apply_transition(self, context: TransitionContext) -> str:
        """Validate, run the side effects and move the key to its target status."""
        self.validate_transition(context)
        target_status = KEY_TRANSITIONS[(context.key.status, context.event)]
        self._transition_handlers[context.event](context)
        context.key.status = target_status
        context.key.updated_by_id = context.actor.id
        return target_status

    def _handle_checkout(self, context: TransitionContext) -> None:
        key = context.key
        key.assigned_to = context.assignee
        key.checkout_time = utcnow()
        key.return_time = None
        if context.expected_return_time is not None:
            key.expected_return_time = context.expected_return_time
        if context.notes:
            key.notes = context.notes

    def _handle_return(self, context: TransitionContext) -> None:
        key = context.key
        key.assigned_to = None
        key.return_time = utcnow()


key_state_machine = KeyCustodyStateMachine()
