"""Vote ledger: at most one vote per identity per complaint, with a cached count.

Vote rows are the source of truth. ``Complaint.votes`` is a projection that is
only ever adjusted inside the same transaction that inserts or deletes a row,
and always relative to the value currently stored on the locked complaint row.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models import Complaint, ComplaintVote
from utils.errors import (
    ActionForbidden,
    ComplaintNotFound,
    LifecycleError,
    TransientError,
    VoteConflict,
)
from utils.identity import ActorIdentity


@dataclass(frozen=True)
class VoteResult:
    votes: int
    liked: bool


def _lock_complaint(complaint_id: int) -> Complaint | None:
    return (
        Complaint.query.filter(Complaint.id == complaint_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def check_vote_allowed(complaint: Complaint, identity: ActorIdentity) -> None:
    """Raise ActionForbidden when ``identity`` may not vote on ``complaint``."""
    if identity.is_user and complaint.user_id is not None and complaint.user_id == identity.id:
        raise ActionForbidden("Cannot vote on your own complaint")

    if identity.is_organization and complaint.org_id == identity.id:
        raise ActionForbidden("Organization cannot vote on complaints")

    organization = complaint.organization
    if organization is not None and organization.is_private:
        if not identity.is_authenticated:
            raise ActionForbidden("Login required for private organization")
        if not (identity.is_user and organization.has_member(identity.id)):
            raise ActionForbidden("Not a member of this organization")


def _existing_vote(complaint_id: int, voter_key: str) -> ComplaintVote | None:
    return ComplaintVote.query.filter_by(complaint_id=complaint_id, voter_key=voter_key).first()


def has_voted(complaint_id: int, identity: ActorIdentity) -> bool:
    return _existing_vote(complaint_id, identity.voter_key) is not None


def ledger_count(complaint_id: int) -> int:
    return db.session.execute(
        select(func.count(ComplaintVote.id)).where(ComplaintVote.complaint_id == complaint_id)
    ).scalar_one()


def toggle_vote(complaint_id: int, identity: ActorIdentity) -> VoteResult:
    """Add the identity's vote if absent, remove it if present; one transaction."""
    voter_key = identity.voter_key
    try:
        complaint = _lock_complaint(complaint_id)
        if complaint is None:
            raise ComplaintNotFound()
        check_vote_allowed(complaint, identity)

        existing = _existing_vote(complaint.id, voter_key)
        if existing is not None:
            db.session.delete(existing)
            new_count = case((Complaint.votes > 0, Complaint.votes - 1), else_=0)
            liked = False
        else:
            db.session.add(ComplaintVote(complaint_id=complaint.id, voter_key=voter_key))
            new_count = Complaint.votes + 1
            liked = True
        db.session.flush()

        db.session.execute(
            update(Complaint)
            .where(Complaint.id == complaint.id)
            .values(votes=new_count)
            .execution_options(synchronize_session=False)
        )
        votes = db.session.execute(select(Complaint.votes).where(Complaint.id == complaint.id)).scalar_one()
        db.session.commit()
    except LifecycleError as exc:
        db.session.rollback()
        current_app.logger.warning(
            "Vote rejected",
            extra={"complaint_id": complaint_id, "actor": identity.describe(), "reason": exc.message},
        )
        raise
    except IntegrityError as exc:
        db.session.rollback()
        current_app.logger.warning(
            "Concurrent vote on the same ledger entry",
            extra={"complaint_id": complaint_id, "actor": identity.describe()},
        )
        raise VoteConflict("Vote changed concurrently. Please retry.") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Database error while toggling vote", extra={"complaint_id": complaint_id})
        raise TransientError("Server error while processing vote") from exc

    current_app.logger.info(
        "Vote toggled",
        extra={"complaint_id": complaint_id, "actor": identity.describe(), "liked": liked, "votes": votes},
    )
    return VoteResult(votes=votes, liked=liked)
