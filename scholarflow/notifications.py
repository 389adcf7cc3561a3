"""
scholarflow.notifications
=========================

Decide *whether* and *what* to tell a student when a status changes, and
hand the result to a :class:`Notifier`.

The decision (:func:`decide_notification`) is a pure function of the old
and new status plus a small context; delivery is the job of whatever
``Notifier`` the workflow was built with.  Two notifiers ship here:
:class:`LogNotifier` writes intents to the log and :class:`OutboxNotifier`
keeps them in memory for the API's default wiring and for tests.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .models import AnyStatus, EntityKind, parse_status

logger = logging.getLogger(__name__)

TITLES = {
    EntityKind.APPLICATION: "Application Status Update",
    EntityKind.DOCUMENT: "Document Review Update",
    EntityKind.SERVICE_REPORT: "Community Service Report Update",
    EntityKind.SERVICE_ENTRY: "Community Service Entry Update",
    EntityKind.DISBURSEMENT: "Disbursement Update",
}

_SUBJECTS = {
    EntityKind.DOCUMENT: "Your document",
    EntityKind.SERVICE_REPORT: "Your community service report",
    EntityKind.SERVICE_ENTRY: "Your community service entry",
    EntityKind.DISBURSEMENT: "Your scholarship disbursement",
}


@dataclass(frozen=True)
class NotificationIntent:
    """The ``(recipient, title, message)`` triple handed to a notifier."""
    recipient_id: int
    title: str
    message: str
    type: str = "info"
    data: Dict[str, Any] = field(default_factory=dict, compare=False)


# ---------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------
def humanize_status(status: object) -> str:
    """
    ``"documents_approved"`` → ``"Documents Approved"``.
    """
    raw = getattr(status, "value", status)
    return str(raw).replace("_", " ").title()


def describe_review_status(status: object) -> str:
    """
    Lower-case phrase for review outcomes.

    >>> describe_review_status("rejected_insufficient_hours")
    'rejected - insufficient hours'
    >>> describe_review_status("pending_review")
    'pending review'
    """
    raw = str(getattr(status, "value", status))
    if raw.startswith("rejected_"):
        return "rejected - " + raw[len("rejected_"):].replace("_", " ")
    return raw.replace("_", " ")


def _kind_of_message(status: AnyStatus) -> str:
    if getattr(status, "is_rejection", False) or status.value in ("rejected", "documents_rejected", "cancelled"):
        return "error"
    if status.value in ("approved", "completed", "processed") or status.value.endswith(
        ("_approved", "_completed", "_processed", "_verified")
    ):
        return "success"
    return "info"


# ---------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------
def decide_notification(
    kind: EntityKind,
    old_status: object,
    new_status: object,
    context: Mapping[str, Any],
) -> Optional[NotificationIntent]:
    """
    Return the intent to send for a status change, or ``None``.

    *context* must contain ``recipient_id`` and may contain
    ``rejection_reason``, ``admin_notes``, ``label`` (e.g. the document
    requirement name) and ``entity_id``.

    No intent is produced when the status did not change.
    """
    old = parse_status(kind, old_status)
    new = parse_status(kind, new_status)
    if old == new:
        return None

    reason = (context.get("rejection_reason") or "").strip()
    notes = (context.get("admin_notes") or "").strip()

    if kind is EntityKind.APPLICATION:
        message = (
            "Your scholarship application status has been updated to: "
            f"{humanize_status(new)}."
        )
        if notes:
            message += f" Note from the administrator: {notes}"
    else:
        subject = _SUBJECTS[kind]
        label = context.get("label")
        if label:
            subject = f"{subject} '{label}'"
        message = f"{subject} has been {describe_review_status(new)}."
        if getattr(new, "is_rejection", False) and reason:
            message += f" Reason: {reason}"
        elif notes and kind is not EntityKind.DOCUMENT:
            message += f" Admin notes: {notes}"

    data = {"entity": kind.value, "old_status": old.value, "new_status": new.value}
    if context.get("entity_id") is not None:
        data["entity_id"] = context["entity_id"]

    return NotificationIntent(
        recipient_id=context["recipient_id"],
        title=TITLES[kind],
        message=message,
        type=_kind_of_message(new),
        data=data,
    )


# ---------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------
class Notifier(ABC):
    """
    Abstract delivery channel.

    Concrete subclasses implement ``send(intent)``; retries and envelopes
    are their business, not the workflow's.
    """

    @abstractmethod
    def send(self, intent: NotificationIntent) -> None:
        """Deliver one notification."""


class LogNotifier(Notifier):
    """Write every intent to the log at INFO level."""

    def send(self, intent: NotificationIntent) -> None:
        logger.info(
            "notify student %s: [%s] %s", intent.recipient_id, intent.title, intent.message
        )


class OutboxNotifier(Notifier):
    """
    In-memory outbox.

    Example
    -------
    >>> box = OutboxNotifier()
    >>> box.send(NotificationIntent(1, "Hi", "there"))
    >>> len(box)
    1
    """

    def __init__(self) -> None:
        self.sent: List[NotificationIntent] = []

    def send(self, intent: NotificationIntent) -> None:
        self.sent.append(intent)

    def for_recipient(self, recipient_id: int) -> List[NotificationIntent]:
        return [n for n in self.sent if n.recipient_id == recipient_id]

    def clear(self) -> None:
        self.sent.clear()

    def __iter__(self):
        return iter(self.sent)

    def __len__(self) -> int:
        return len(self.sent)
