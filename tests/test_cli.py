from datetime import datetime, timedelta

import jwt
import pytest

from extensions import db
from models import Complaint
from utils.tokens import decode_access_token


def test_purge_withdrawn_command(app, make_complaint):
    expired = make_complaint(status="Withdrawn", withdrawn_at=datetime.utcnow() - timedelta(days=90))
    kept = make_complaint(status="Withdrawn", withdrawn_at=datetime.utcnow())

    result = app.test_cli_runner().invoke(args=["purge-withdrawn"])

    assert result.exit_code == 0
    with app.app_context():
        assert db.session.get(Complaint, expired) is None
        assert db.session.get(Complaint, kept) is not None


def test_issue_token_command(app, seed):
    result = app.test_cli_runner().invoke(args=["issue-token", "--role", "organization", "--id", str(seed.city)])

    assert result.exit_code == 0
    with app.app_context():
        claims = decode_access_token(result.output.strip())
    assert claims["role"] == "organization"
    assert claims["sub"] == seed.city


def test_issue_token_rejects_unknown_role(app):
    result = app.test_cli_runner().invoke(args=["issue-token", "--role", "admin", "--id", "1"])
    assert result.exit_code != 0


def test_tampered_token_fails_verification(app, auth_header, seed):
    token = auth_header("user", seed.bob)["Authorization"].split(" ", 1)[1]
    with app.app_context(), pytest.raises(jwt.InvalidTokenError):
        decode_access_token(token + "x")
