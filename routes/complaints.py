"""Complaint intake, voting, and lifecycle transitions blueprint."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from flask_wtf import FlaskForm
from sqlalchemy.exc import SQLAlchemyError
from wtforms import BooleanField, IntegerField, SelectField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

from extensions import db
from models import (
    COMPLAINT_PRIORITIES,
    DESCRIPTION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    Complaint,
    Department,
    Organization,
    User,
)
from utils.decorators import actor_required
from utils.errors import ComplaintNotFound, InvalidRequest, NotFound, TransientError
from utils.identity import current_identity, remember_anonymous_token, resolve_identity
from utils.lifecycle import change_status, check_text_lengths, edit_content, edit_history, restore, withdraw
from utils.security import sanitize_text
from utils.vote_ledger import toggle_vote

complaints_bp = Blueprint("complaints", __name__, url_prefix="/complaints")

WHOLE_ORGANIZATION_MARKERS = {"", "NONE", "NONE_DEPT", "NONE_DEPARTMENT", "ORGANIZATION"}


class ComplaintIntakeForm(FlaskForm):
    class Meta:
        csrf = False

    title = StringField("Title", validators=[DataRequired(), Length(max=TITLE_MAX_LENGTH)])
    description = TextAreaField("Description", validators=[DataRequired(), Length(max=DESCRIPTION_MAX_LENGTH)])
    organizationId = IntegerField("Organization", validators=[DataRequired()])
    departmentId = StringField("Department", validators=[Optional()])
    priority = SelectField(
        "Priority",
        choices=[(p, p) for p in COMPLAINT_PRIORITIES],
        default="Low",
    )
    isAnonymous = BooleanField("File anonymously", false_values=(False, "false", "0", ""))


class ComplaintEditForm(FlaskForm):
    class Meta:
        csrf = False

    title = StringField("Title", validators=[Optional(), Length(max=TITLE_MAX_LENGTH)])
    description = TextAreaField("Description", validators=[Optional(), Length(max=DESCRIPTION_MAX_LENGTH)])


def _first_form_error(form) -> str:
    for field_name, errors in form.errors.items():
        if errors:
            return f"{field_name}: {errors[0]}"
    return "Invalid request"


def _require_text_fields(*keys) -> None:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return
    for key in keys:
        if payload.get(key) is not None and not isinstance(payload[key], str):
            raise InvalidRequest(f"{key} must be a string")


def _resolve_department(raw_value, org_id: int):
    value = str(raw_value or "").strip()
    if value.upper() in WHOLE_ORGANIZATION_MARKERS:
        return None
    try:
        dept_id = int(value)
    except ValueError:
        raise InvalidRequest("Invalid department for this organization")
    department = Department.query.filter_by(id=dept_id, org_id=org_id).first()
    if not department:
        raise InvalidRequest("Invalid department for this organization")
    return department


@complaints_bp.route("", methods=["POST"])
def submit_complaint():
    _require_text_fields("title", "description")
    form = ComplaintIntakeForm()
    if not form.validate_on_submit():
        raise InvalidRequest(_first_form_error(form))

    title = sanitize_text(form.title.data)
    description = sanitize_text(form.description.data)
    if not title or not description:
        raise InvalidRequest("title, description, organizationId required")
    check_text_lengths(title, description)

    organization = db.session.get(Organization, form.organizationId.data)
    if not organization or organization.status != "active":
        raise NotFound("Organization not found")
    department = _resolve_department(form.departmentId.data, organization.id)

    actor = current_user._get_current_object() if current_user.is_authenticated else None
    anonymous = form.isAnonymous.data if form.isAnonymous.raw_data else actor is None
    # Only a named user filing openly is recorded as the submitter.
    submitter_id = actor.id if isinstance(actor, User) and not anonymous else None

    try:
        complaint = Complaint(
            org_id=organization.id,
            department_id=department.id if department else None,
            user_id=submitter_id,
            title=title,
            description=description,
            priority=form.priority.data,
            status="Open",
            is_anonymous=bool(anonymous),
            tracking_code=Complaint.generate_tracking_code(),
            votes=0,
        )
        db.session.add(complaint)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Database error while saving complaint")
        raise TransientError() from exc

    current_app.logger.info(
        "Complaint submitted",
        extra={"complaint_id": complaint.id, "org_id": organization.id, "anonymous": complaint.is_anonymous},
    )
    return jsonify({"success": True, "id": complaint.id, "trackingCode": complaint.tracking_code}), 201


@complaints_bp.route("/<int:complaint_id>", methods=["GET"])
@login_required
def view_complaint(complaint_id):
    complaint = db.session.get(Complaint, complaint_id)
    if not complaint:
        raise ComplaintNotFound()
    return jsonify({"success": True, "complaint": complaint.to_payload(current_app.config.get("UPLOAD_URL_PREFIX", "/uploads"))})


@complaints_bp.route("/track/<string:tracking_code>", methods=["GET"])
def track_complaint(tracking_code):
    complaint = Complaint.query.filter_by(tracking_code=tracking_code.strip().upper()).first()
    if not complaint:
        raise ComplaintNotFound()
    return jsonify({"success": True, "complaint": complaint.public_payload()})


@complaints_bp.route("/<int:complaint_id>/vote", methods=["POST"])
def vote(complaint_id):
    resolved = resolve_identity()
    result = toggle_vote(complaint_id, resolved.identity)
    response = jsonify({"success": True, "votes": result.votes, "liked": result.liked})
    if resolved.minted_token:
        remember_anonymous_token(response, resolved.minted_token)
    return response


@complaints_bp.route("/<int:complaint_id>/withdraw", methods=["POST"])
@actor_required("user", message="Only the complainant can withdraw.")
def withdraw_complaint(complaint_id):
    outcome = withdraw(complaint_id, current_identity())
    if not outcome.changed:
        return jsonify({"success": True, "message": "Complaint already withdrawn."})
    return jsonify(
        {
            "success": True,
            "message": "Complaint withdrawn.",
            "retentionDays": int(current_app.config.get("WITHDRAW_RETENTION_DAYS", 30)),
        }
    )


@complaints_bp.route("/<int:complaint_id>/restore", methods=["POST"])
@actor_required("user", message="Only the complainant can restore.")
def restore_complaint(complaint_id):
    restore(complaint_id, current_identity())
    return jsonify({"success": True, "message": "Complaint restored to Open."})


@complaints_bp.route("/<int:complaint_id>", methods=["PATCH"])
@login_required
def update_complaint(complaint_id):
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidRequest("No fields to update")

    wants_status = payload.get("status") not in (None, "")
    wants_edit = "title" in payload or "description" in payload
    if wants_status and wants_edit:
        raise InvalidRequest("Send either a status or title/description, not both")

    identity = current_identity()
    if wants_status:
        outcome = change_status(complaint_id, identity, str(payload["status"]))
        complaint = outcome.complaint
        return jsonify(
            {
                "success": True,
                "message": "Status updated successfully",
                "status": complaint.status,
                "votes": complaint.votes or 0,
            }
        )

    if not wants_edit:
        raise InvalidRequest("No fields to update")
    _require_text_fields("title", "description")
    form = ComplaintEditForm()
    if not form.validate():
        raise InvalidRequest(_first_form_error(form))

    outcome = edit_content(
        complaint_id,
        identity,
        title=payload.get("title"),
        description=payload.get("description"),
    )
    return jsonify(
        {
            "success": True,
            "message": "Complaint updated successfully",
            "complaint": outcome.complaint.to_payload(current_app.config.get("UPLOAD_URL_PREFIX", "/uploads")),
        }
    )


@complaints_bp.route("/<int:complaint_id>/edits", methods=["GET"])
@login_required
def complaint_edits(complaint_id):
    edits = edit_history(complaint_id, current_identity())
    return jsonify({"success": True, "edits": [edit.to_payload() for edit in edits]})
