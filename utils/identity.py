"""Resolve the acting identity behind a request: user, organization, or anonymous visitor."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import jwt
from flask import current_app, request
from flask_login import current_user

from extensions import db
from models import Organization, User
from utils.security import generate_anonymous_token, is_well_formed_token
from utils.tokens import bearer_from_header, decode_access_token


class IdentityKind(str, Enum):
    USER = "user"
    ORGANIZATION = "organization"
    ANONYMOUS = "anonymous"


VOTER_KEY_PREFIXES = {
    IdentityKind.USER: "user",
    IdentityKind.ORGANIZATION: "org",
    IdentityKind.ANONYMOUS: "anon",
}


@dataclass(frozen=True)
class ActorIdentity:
    kind: IdentityKind
    id: Optional[int] = None
    token: Optional[str] = None

    @classmethod
    def user(cls, user_id: int) -> "ActorIdentity":
        return cls(IdentityKind.USER, id=int(user_id))

    @classmethod
    def organization(cls, org_id: int) -> "ActorIdentity":
        return cls(IdentityKind.ORGANIZATION, id=int(org_id))

    @classmethod
    def anonymous(cls, token: str) -> "ActorIdentity":
        if not token:
            raise ValueError("Anonymous identity requires a token")
        return cls(IdentityKind.ANONYMOUS, token=token)

    @property
    def is_authenticated(self) -> bool:
        return self.kind is not IdentityKind.ANONYMOUS

    @property
    def is_user(self) -> bool:
        return self.kind is IdentityKind.USER

    @property
    def is_organization(self) -> bool:
        return self.kind is IdentityKind.ORGANIZATION

    @property
    def voter_key(self) -> str:
        """Storage form of the identity; prefixes keep the id spaces disjoint."""
        payload = self.token if self.kind is IdentityKind.ANONYMOUS else str(self.id)
        return f"{VOTER_KEY_PREFIXES[self.kind]}:{payload}"

    def describe(self) -> str:
        if self.kind is IdentityKind.ANONYMOUS:
            return "anonymous"
        return f"{self.kind.value}:{self.id}"


@dataclass(frozen=True)
class ResolvedIdentity:
    identity: ActorIdentity
    # Set only when a fresh anonymous token was minted and must be persisted as a cookie.
    minted_token: Optional[str] = None


def load_actor_from_bearer(header_value: Optional[str]):
    """Flask-Login request loader body: a bad or expired token means no actor."""
    token = bearer_from_header(header_value)
    if not token:
        return None
    try:
        claims = decode_access_token(token)
    except jwt.InvalidTokenError as exc:
        current_app.logger.info("Ignoring invalid bearer token", extra={"error": str(exc)})
        return None

    if claims["role"] == "user":
        user = db.session.get(User, claims["sub"])
        return user if user and user.is_active else None

    org = db.session.get(Organization, claims["sub"])
    return org if org and org.status == "active" else None


def identity_for_actor(actor) -> Optional[ActorIdentity]:
    if isinstance(actor, User):
        return ActorIdentity.user(actor.id)
    if isinstance(actor, Organization):
        return ActorIdentity.organization(actor.id)
    return None


def current_identity() -> Optional[ActorIdentity]:
    """Authenticated identity of the current request, or None."""
    if current_user and current_user.is_authenticated:
        return identity_for_actor(current_user._get_current_object())
    return None


def resolve_identity() -> ResolvedIdentity:
    identity = current_identity()
    if identity is not None:
        return ResolvedIdentity(identity)

    cookie_name = current_app.config.get("ANON_COOKIE_NAME", "anon_vote_id")
    existing = request.cookies.get(cookie_name)
    if is_well_formed_token(existing):
        return ResolvedIdentity(ActorIdentity.anonymous(existing))

    token = generate_anonymous_token()
    return ResolvedIdentity(ActorIdentity.anonymous(token), minted_token=token)


def remember_anonymous_token(response, token: str):
    max_age = current_app.config["ANON_COOKIE_MAX_AGE"]
    response.set_cookie(
        current_app.config.get("ANON_COOKIE_NAME", "anon_vote_id"),
        token,
        max_age=int(max_age.total_seconds()),
        httponly=True,
        secure=bool(current_app.config.get("ANON_COOKIE_SECURE")),
        samesite="Lax",
    )
    return response
