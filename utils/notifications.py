"""Fan-out of complaint lifecycle events to submitters, organizations, and members."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import NOTIFICATION_TYPES, Complaint, Notification


@dataclass(frozen=True)
class NotificationEvent:
    kind: str
    complaint_id: int
    message: str
    user_id: Optional[int] = None
    org_id: Optional[int] = None


class NotificationEmitter:
    """Receives events after the lifecycle transaction has committed."""

    def emit(self, events: Iterable[NotificationEvent]) -> None:
        raise NotImplementedError


class DatabaseNotificationEmitter(NotificationEmitter):
    """Persists one inbox row per event; failures never reach the caller."""

    def emit(self, events: Iterable[NotificationEvent]) -> None:
        events = list(events)
        if not events:
            return
        try:
            for event in events:
                if event.kind not in NOTIFICATION_TYPES:
                    raise ValueError(f"Unknown notification type: {event.kind}")
                db.session.add(
                    Notification(
                        user_id=event.user_id,
                        org_id=event.org_id,
                        complaint_id=event.complaint_id,
                        type=event.kind,
                        message=event.message,
                    )
                )
            db.session.commit()
        except (SQLAlchemyError, ValueError):
            db.session.rollback()
            current_app.logger.exception(
                "Notification delivery failed",
                extra={"complaint_ids": sorted({e.complaint_id for e in events})},
            )
            return
        current_app.logger.info("Notifications delivered", extra={"count": len(events)})


def get_emitter() -> NotificationEmitter:
    emitter = current_app.extensions.get("notification_emitter")
    if emitter is None:
        emitter = DatabaseNotificationEmitter()
        current_app.extensions["notification_emitter"] = emitter
    return emitter


def status_change_events(complaint: Complaint, new_status: str) -> List[NotificationEvent]:
    events: List[NotificationEvent] = []
    if complaint.user_id:
        events.append(
            NotificationEvent(
                kind="status_changed",
                complaint_id=complaint.id,
                message=f"Complaint #{complaint.id} status updated to: {new_status}",
                user_id=complaint.user_id,
                org_id=complaint.org_id,
            )
        )
    for member_id in complaint.organization.member_ids():
        if member_id == complaint.user_id:
            continue
        events.append(
            NotificationEvent(
                kind="status_changed",
                complaint_id=complaint.id,
                message=f"Complaint #{complaint.id} status changed to: {new_status}",
                user_id=member_id,
                org_id=complaint.org_id,
            )
        )
    return events


def withdrawal_events(complaint: Complaint) -> List[NotificationEvent]:
    return [
        NotificationEvent(
            kind="complaint_withdrawn",
            complaint_id=complaint.id,
            message=f"Complaint #{complaint.id} withdrawn by the user",
            org_id=complaint.org_id,
        )
    ]


def restoration_events(complaint: Complaint) -> List[NotificationEvent]:
    return [
        NotificationEvent(
            kind="complaint_restored",
            complaint_id=complaint.id,
            message=f"Complaint #{complaint.id} restored by the user",
            org_id=complaint.org_id,
        )
    ]
