"""Core data models for organizations, complaints, the vote ledger, and notifications."""
import secrets
import string
from datetime import datetime, timedelta

from flask_login import UserMixin

from extensions import db


COMPLAINT_STATUSES: tuple[str, ...] = (
	"Open",
	"Pending",
	"In Progress",
	"Resolved",
	"Rejected",
	"Closed",
	"Withdrawn",
)

WITHDRAWN_STATUS = "Withdrawn"

EDITABLE_STATUSES: tuple[str, ...] = (
	"Open",
	"Pending",
)

COMPLAINT_PRIORITIES: tuple[str, ...] = (
	"Low",
	"Medium",
	"High",
)

ORGANIZATION_ACCESS_TYPES: tuple[str, ...] = (
	"Public",
	"Private",
)

NOTIFICATION_TYPES: tuple[str, ...] = (
	"status_changed",
	"complaint_withdrawn",
	"complaint_restored",
)

EDIT_WINDOW = timedelta(hours=24)

TRACKING_CODE_ALPHABET = string.ascii_uppercase + string.digits
TRACKING_CODE_LENGTH = 8

TITLE_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 5000


class Organization(UserMixin, db.Model):
	__tablename__ = "organizations"

	actor_kind = "organization"

	id = db.Column(db.Integer, primary_key=True)
	name = db.Column(db.String(255), nullable=False, index=True)
	slug = db.Column(db.String(255), unique=True, nullable=False, index=True)
	email = db.Column(db.String(255), unique=True, nullable=True)
	access_type = db.Column(db.String(10), nullable=False, default="Public", index=True)
	status = db.Column(db.String(20), nullable=False, default="active", index=True)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (
		db.CheckConstraint("access_type IN ('Public','Private')", name="ck_organization_access_type"),
	)

	departments = db.relationship("Department", back_populates="organization", cascade="all, delete-orphan")
	memberships = db.relationship("UserOrganization", back_populates="organization", lazy="dynamic")
	complaints = db.relationship("Complaint", back_populates="organization", lazy="dynamic")

	@property
	def is_private(self) -> bool:
		return self.access_type == "Private"

	def get_id(self) -> str:
		return f"organization:{self.id}"

	def has_member(self, user_id) -> bool:
		if user_id is None:
			return False
		return self.memberships.filter_by(user_id=user_id).first() is not None

	def member_ids(self) -> list[int]:
		return [m.user_id for m in self.memberships.order_by(UserOrganization.user_id).all()]


class Department(db.Model):
	__tablename__ = "departments"

	id = db.Column(db.Integer, primary_key=True)
	org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
	name = db.Column(db.String(255), nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	organization = db.relationship("Organization", back_populates="departments")


class User(UserMixin, db.Model):
	__tablename__ = "users"

	actor_kind = "user"

	id = db.Column(db.Integer, primary_key=True)
	name = db.Column(db.String(150), nullable=False)
	email = db.Column(db.String(255), unique=True, nullable=False, index=True)
	is_active = db.Column(db.Boolean, default=True, nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	memberships = db.relationship("UserOrganization", back_populates="user", lazy="dynamic")
	complaints = db.relationship("Complaint", back_populates="user", lazy="dynamic")

	def get_id(self) -> str:
		return f"user:{self.id}"

	@property
	def active(self) -> bool:  # Flask-Login compatibility alias
		return self.is_active


class UserOrganization(db.Model):
	__tablename__ = "user_organizations"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
	org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
	joined_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (db.UniqueConstraint("user_id", "org_id", name="uq_user_organization"),)

	user = db.relationship("User", back_populates="memberships")
	organization = db.relationship("Organization", back_populates="memberships")


class Complaint(db.Model):
	__tablename__ = "complaints"

	id = db.Column(db.Integer, primary_key=True)
	org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
	department_id = db.Column(db.Integer, db.ForeignKey("departments.id"), nullable=True, index=True)
	user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
	title = db.Column(db.String(TITLE_MAX_LENGTH), nullable=False)
	description = db.Column(db.Text, nullable=False)
	priority = db.Column(db.String(10), nullable=False, default="Low", index=True)
	status = db.Column(db.String(20), nullable=False, default="Open", index=True)
	is_anonymous = db.Column(db.Boolean, nullable=False, default=False)
	attachment_path = db.Column(db.String(500), nullable=True)
	tracking_code = db.Column(db.String(16), nullable=False, unique=True, index=True)
	votes = db.Column(db.Integer, nullable=False, default=0)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	edited_at = db.Column(db.DateTime, nullable=True)
	withdrawn_at = db.Column(db.DateTime, nullable=True, index=True)

	__table_args__ = (
		db.CheckConstraint(
			"status IN ('Open','Pending','In Progress','Resolved','Rejected','Closed','Withdrawn')",
			name="ck_complaint_status_valid",
		),
		db.CheckConstraint(
			"priority IN ('Low','Medium','High')",
			name="ck_complaint_priority_valid",
		),
		db.CheckConstraint(
			"(status = 'Withdrawn' AND withdrawn_at IS NOT NULL) OR (status <> 'Withdrawn' AND withdrawn_at IS NULL)",
			name="ck_complaint_withdrawn_at",
		),
		db.CheckConstraint("votes >= 0", name="ck_complaint_votes_non_negative"),
		db.Index("ix_complaints_status_withdrawn", "status", "withdrawn_at"),
	)

	organization = db.relationship("Organization", back_populates="complaints")
	department = db.relationship("Department")
	user = db.relationship("User", back_populates="complaints")
	vote_rows = db.relationship("ComplaintVote", back_populates="complaint", cascade="all, delete-orphan")
	edits = db.relationship(
		"ComplaintEdit",
		back_populates="complaint",
		order_by="ComplaintEdit.edited_at.desc()",
		cascade="all, delete-orphan",
	)
	notifications = db.relationship("Notification", back_populates="complaint")

	@property
	def is_withdrawn(self) -> bool:
		return self.status == WITHDRAWN_STATUS

	@property
	def is_editable_status(self) -> bool:
		return self.status in EDITABLE_STATUSES

	@staticmethod
	def generate_tracking_code(max_attempts: int = 10) -> str:
		"""Return a random tracking code that no stored complaint uses yet."""
		for _ in range(max_attempts):
			code = "".join(secrets.choice(TRACKING_CODE_ALPHABET) for _ in range(TRACKING_CODE_LENGTH))
			if not Complaint.query.filter_by(tracking_code=code).first():
				return code
		raise RuntimeError("Unable to allocate a unique tracking code")

	def attachment_url(self, prefix: str = "/uploads") -> str | None:
		if not self.attachment_path:
			return None
		return f"{prefix.rstrip('/')}/{self.attachment_path.lstrip('/')}"

	def to_payload(self, upload_prefix: str = "/uploads") -> dict:
		return {
			"id": self.id,
			"title": self.title,
			"description": self.description,
			"status": self.status,
			"priority": self.priority,
			"isAnonymous": self.is_anonymous,
			"createdAt": self.created_at.isoformat() if self.created_at else None,
			"editedAt": self.edited_at.isoformat() if self.edited_at else None,
			"withdrawnAt": self.withdrawn_at.isoformat() if self.withdrawn_at else None,
			"trackingCode": self.tracking_code,
			"organization": {"id": self.organization.id, "name": self.organization.name} if self.organization else None,
			"department": {"id": self.department.id, "name": self.department.name} if self.department else None,
			"attachmentUrl": self.attachment_url(upload_prefix),
			"votes": self.votes or 0,
			"user_id": self.user_id,
		}

	def public_payload(self) -> dict:
		return {
			"trackingCode": self.tracking_code,
			"title": self.title,
			"status": self.status,
			"priority": self.priority,
			"organization": self.organization.name if self.organization else None,
			"department": self.department.name if self.department else None,
			"createdAt": self.created_at.isoformat() if self.created_at else None,
			"votes": self.votes or 0,
		}


class ComplaintVote(db.Model):
	__tablename__ = "complaint_votes"

	id = db.Column(db.Integer, primary_key=True)
	complaint_id = db.Column(db.Integer, db.ForeignKey("complaints.id"), nullable=False, index=True)
	voter_key = db.Column(db.String(80), nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (db.UniqueConstraint("complaint_id", "voter_key", name="uq_complaint_vote_voter"),)

	complaint = db.relationship("Complaint", back_populates="vote_rows")


class ComplaintEdit(db.Model):
	__tablename__ = "complaint_edits"

	id = db.Column(db.Integer, primary_key=True)
	complaint_id = db.Column(db.Integer, db.ForeignKey("complaints.id"), nullable=False, index=True)
	old_title = db.Column(db.String(TITLE_MAX_LENGTH), nullable=False)
	old_description = db.Column(db.Text, nullable=False)
	new_title = db.Column(db.String(TITLE_MAX_LENGTH), nullable=False)
	new_description = db.Column(db.Text, nullable=False)
	edited_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
	edited_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

	complaint = db.relationship("Complaint", back_populates="edits")
	editor = db.relationship("User")

	def to_payload(self) -> dict:
		return {
			"id": self.id,
			"old_title": self.old_title,
			"old_description": self.old_description,
			"new_title": self.new_title,
			"new_description": self.new_description,
			"edited_at": self.edited_at.isoformat() if self.edited_at else None,
			"edited_by_name": self.editor.name if self.editor else None,
		}


class Notification(db.Model):
	__tablename__ = "notifications"

	id = db.Column(db.Integer, primary_key=True)
	user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
	org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=True, index=True)
	complaint_id = db.Column(db.Integer, db.ForeignKey("complaints.id", ondelete="SET NULL"), nullable=True, index=True)
	type = db.Column(db.String(30), nullable=False)
	message = db.Column(db.String(500), nullable=False)
	created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
	read_at = db.Column(db.DateTime, nullable=True)

	__table_args__ = (
		db.CheckConstraint(
			"type IN ('status_changed','complaint_withdrawn','complaint_restored')",
			name="ck_notification_type",
		),
		db.CheckConstraint("user_id IS NOT NULL OR org_id IS NOT NULL", name="ck_notification_recipient"),
	)

	complaint = db.relationship("Complaint", back_populates="notifications")

	def to_payload(self) -> dict:
		return {
			"id": self.id,
			"type": self.type,
			"message": self.message,
			"complaints_id": self.complaint_id,
			"org_id": self.org_id,
			"createdAt": self.created_at.isoformat() if self.created_at else None,
			"read_at": self.read_at.isoformat() if self.read_at else None,
		}
