from datetime import timedelta

import pytest

from utils.identity import ActorIdentity, IdentityKind, resolve_identity


def test_voter_keys_keep_identity_spaces_apart():
    assert ActorIdentity.user(7).voter_key == "user:7"
    assert ActorIdentity.organization(7).voter_key == "org:7"
    assert ActorIdentity.anonymous("7" * 32).voter_key == "anon:" + "7" * 32
    assert len({ActorIdentity.user(7).voter_key, ActorIdentity.organization(7).voter_key}) == 2


def test_anonymous_identity_requires_token():
    with pytest.raises(ValueError):
        ActorIdentity.anonymous("")


def test_no_credentials_mints_hex_token(app):
    with app.test_request_context("/complaints/1/vote", method="POST"):
        resolved = resolve_identity()
    assert resolved.identity.kind is IdentityKind.ANONYMOUS
    assert resolved.minted_token == resolved.identity.token
    assert len(resolved.minted_token) == 32
    int(resolved.minted_token, 16)


def test_existing_cookie_is_reused(app):
    token = "ab" * 16
    with app.test_request_context(
        "/complaints/1/vote", method="POST", headers={"Cookie": f"anon_vote_id={token}"}
    ):
        resolved = resolve_identity()
    assert resolved.identity == ActorIdentity.anonymous(token)
    assert resolved.minted_token is None


def test_malformed_cookie_is_replaced(app):
    with app.test_request_context(
        "/complaints/1/vote", method="POST", headers={"Cookie": "anon_vote_id=short"}
    ):
        resolved = resolve_identity()
    assert resolved.minted_token is not None
    assert resolved.identity.token != "short"


def test_user_bearer_token_resolves_user(app, seed, auth_header):
    with app.test_request_context("/complaints/1/vote", method="POST", headers=auth_header("user", seed.bob)):
        resolved = resolve_identity()
    assert resolved.identity == ActorIdentity.user(seed.bob)
    assert resolved.minted_token is None


def test_organization_bearer_token_resolves_organization(app, seed, auth_header):
    with app.test_request_context("/complaints/1/vote", method="POST", headers=auth_header("organization", seed.water)):
        resolved = resolve_identity()
    assert resolved.identity == ActorIdentity.organization(seed.water)


def test_expired_token_degrades_to_anonymous(app, seed, auth_header):
    headers = auth_header("user", seed.bob, expires_in=timedelta(seconds=-5))
    with app.test_request_context("/complaints/1/vote", method="POST", headers=headers):
        resolved = resolve_identity()
    assert resolved.identity.kind is IdentityKind.ANONYMOUS
    assert resolved.minted_token is not None


def test_garbage_token_degrades_to_anonymous(app):
    with app.test_request_context(
        "/complaints/1/vote", method="POST", headers={"Authorization": "Bearer not-a-jwt"}
    ):
        resolved = resolve_identity()
    assert resolved.identity.kind is IdentityKind.ANONYMOUS


def test_token_for_unknown_user_degrades_to_anonymous(app, seed, auth_header):
    with app.test_request_context("/complaints/1/vote", method="POST", headers=auth_header("user", 9999)):
        resolved = resolve_identity()
    assert resolved.identity.kind is IdentityKind.ANONYMOUS
