"""Complaint lifecycle state machine.

Transitions::

    Open -> Pending | In Progress | Resolved | Rejected | Closed   (owning organization)
    any non-Withdrawn -> Withdrawn                                 (submitter)
    Withdrawn -> Open, while inside the retention window           (submitter)

Title and description may be revised by the submitter only while the
complaint is Open or Pending and no more than 24 hours after creation.
Every check runs against the locked row before anything is written, and
notifications go out only after the transaction commits.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from models import (
    COMPLAINT_STATUSES,
    DESCRIPTION_MAX_LENGTH,
    EDIT_WINDOW,
    TITLE_MAX_LENGTH,
    WITHDRAWN_STATUS,
    Complaint,
    ComplaintEdit,
)
from utils.errors import (
    ActionForbidden,
    ComplaintNotFound,
    InvalidRequest,
    InvalidTransition,
    LifecycleError,
    RetentionWindowExpired,
    TransientError,
)
from utils.identity import ActorIdentity
from utils.notifications import (
    NotificationEvent,
    get_emitter,
    restoration_events,
    status_change_events,
    withdrawal_events,
)
from utils.security import sanitize_text


@dataclass
class TransitionOutcome:
    complaint: Complaint
    changed: bool = True
    events: List[NotificationEvent] = field(default_factory=list)


def retention_window(days: Optional[int] = None) -> timedelta:
    if days is None:
        days = int(current_app.config.get("WITHDRAW_RETENTION_DAYS", 30))
    return timedelta(days=days)


def check_text_lengths(title: str, description: str) -> None:
    """Limits apply to the sanitized text, which is what gets stored."""
    if len(title) > TITLE_MAX_LENGTH:
        raise InvalidRequest(f"title: Field cannot be longer than {TITLE_MAX_LENGTH} characters.")
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise InvalidRequest(f"description: Field cannot be longer than {DESCRIPTION_MAX_LENGTH} characters.")


def _lock_complaint(complaint_id: int) -> Complaint:
    complaint = db.session.get(Complaint, complaint_id, with_for_update=True, populate_existing=True)
    if complaint is None:
        raise ComplaintNotFound()
    return complaint


def _require_submitter(complaint: Complaint, identity: ActorIdentity, message: str) -> None:
    if not identity.is_user or complaint.user_id is None or complaint.user_id != identity.id:
        raise ActionForbidden(message)


@contextmanager
def _transition(action: str, complaint_id: int, identity: ActorIdentity):
    try:
        yield
        db.session.commit()
    except LifecycleError as exc:
        db.session.rollback()
        current_app.logger.warning(
            "Complaint transition rejected",
            extra={"action": action, "complaint_id": complaint_id, "actor": identity.describe(), "reason": exc.message},
        )
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(
            "Database error during complaint transition",
            extra={"action": action, "complaint_id": complaint_id},
        )
        raise TransientError() from exc


def _finish(action: str, outcome: TransitionOutcome, identity: ActorIdentity) -> TransitionOutcome:
    current_app.logger.info(
        "Complaint transition applied",
        extra={
            "action": action,
            "complaint_id": outcome.complaint.id,
            "actor": identity.describe(),
            "status": outcome.complaint.status,
            "changed": outcome.changed,
        },
    )
    if outcome.events:
        get_emitter().emit(outcome.events)
    return outcome


def change_status(complaint_id: int, identity: ActorIdentity, new_status: str) -> TransitionOutcome:
    with _transition("status_change", complaint_id, identity):
        complaint = _lock_complaint(complaint_id)
        if not identity.is_organization or identity.id != complaint.org_id:
            raise ActionForbidden("Only the organization can update complaint status")
        if new_status not in COMPLAINT_STATUSES:
            raise InvalidTransition("Invalid status value")
        if new_status == WITHDRAWN_STATUS:
            raise ActionForbidden("Only the complainant can withdraw a complaint")
        if complaint.is_withdrawn:
            raise InvalidTransition("Withdrawn complaints can only be restored by the complainant", status_code=409)

        complaint.status = new_status
        outcome = TransitionOutcome(complaint, events=status_change_events(complaint, new_status))
    return _finish("status_change", outcome, identity)


def edit_content(
    complaint_id: int,
    identity: ActorIdentity,
    title: Optional[str] = None,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> TransitionOutcome:
    now = now or datetime.utcnow()
    with _transition("edit", complaint_id, identity):
        complaint = _lock_complaint(complaint_id)
        _require_submitter(complaint, identity, "You can only edit your own complaints")

        if now - complaint.created_at > EDIT_WINDOW:
            raise InvalidTransition(
                "Complaints can only be edited within 24 hours of submission",
                status_code=403,
            )
        if not complaint.is_editable_status:
            raise InvalidTransition(f"Cannot edit {complaint.status.lower()} complaints", status_code=403)

        new_title = sanitize_text(title) if title is not None else ""
        new_description = sanitize_text(description) if description is not None else ""
        if not new_title and not new_description:
            raise InvalidRequest("No valid fields to update")
        check_text_lengths(new_title, new_description)

        db.session.add(
            ComplaintEdit(
                complaint_id=complaint.id,
                old_title=complaint.title,
                old_description=complaint.description,
                new_title=new_title or complaint.title,
                new_description=new_description or complaint.description,
                edited_by=identity.id,
                edited_at=now,
            )
        )
        db.session.flush()

        if new_title:
            complaint.title = new_title
        if new_description:
            complaint.description = new_description
        complaint.edited_at = now
        outcome = TransitionOutcome(complaint)
    return _finish("edit", outcome, identity)


def withdraw(complaint_id: int, identity: ActorIdentity, now: Optional[datetime] = None) -> TransitionOutcome:
    now = now or datetime.utcnow()
    with _transition("withdraw", complaint_id, identity):
        complaint = _lock_complaint(complaint_id)
        _require_submitter(complaint, identity, "You can only withdraw your own complaint.")

        if complaint.is_withdrawn:
            outcome = TransitionOutcome(complaint, changed=False)
        else:
            complaint.status = WITHDRAWN_STATUS
            complaint.withdrawn_at = now
            outcome = TransitionOutcome(complaint, events=withdrawal_events(complaint))
    return _finish("withdraw", outcome, identity)


def restore(
    complaint_id: int,
    identity: ActorIdentity,
    now: Optional[datetime] = None,
    retention_days: Optional[int] = None,
) -> TransitionOutcome:
    now = now or datetime.utcnow()
    window = retention_window(retention_days)
    with _transition("restore", complaint_id, identity):
        complaint = _lock_complaint(complaint_id)
        _require_submitter(complaint, identity, "You can only restore your own complaint.")

        if not complaint.is_withdrawn:
            raise InvalidTransition("Complaint is not withdrawn.")
        if now - complaint.withdrawn_at >= window:
            raise RetentionWindowExpired()

        complaint.status = "Open"
        complaint.withdrawn_at = None
        outcome = TransitionOutcome(complaint, events=restoration_events(complaint))
    return _finish("restore", outcome, identity)


def edit_history(complaint_id: int, identity: ActorIdentity) -> List[ComplaintEdit]:
    complaint = db.session.get(Complaint, complaint_id)
    if complaint is None:
        raise ComplaintNotFound()
    is_submitter = identity.is_user and complaint.user_id is not None and complaint.user_id == identity.id
    is_owner_org = identity.is_organization and complaint.org_id == identity.id
    if not (is_submitter or is_owner_org):
        current_app.logger.warning(
            "Edit history access denied",
            extra={"complaint_id": complaint_id, "actor": identity.describe()},
        )
        raise ActionForbidden("Access denied")
    return list(complaint.edits)
