"""Tests for staff token verification."""

from datetime import timedelta
from uuid import uuid4

from jose import jwt

from app.config import settings
from app.core.security import StaffClaims, create_access_token, read_staff_claims


def test_reads_user_and_clinic():
    user_id, clinic_id = uuid4(), uuid4()
    token = create_access_token({"sub": str(user_id), "clinic_id": str(clinic_id)})

    assert read_staff_claims(token) == StaffClaims(user_id=user_id, clinic_id=clinic_id)


def test_expired_token_is_rejected():
    token = create_access_token(
        {"sub": str(uuid4()), "clinic_id": str(uuid4())},
        expires_delta=timedelta(seconds=-1),
    )

    assert read_staff_claims(token) is None


def test_malformed_clinic_id_is_rejected():
    token = create_access_token({"sub": str(uuid4()), "clinic_id": "clinic-42"})

    assert read_staff_claims(token) is None


def test_refresh_tokens_are_not_accepted():
    token = jwt.encode(
        {"sub": str(uuid4()), "clinic_id": str(uuid4()), "type": "refresh"},
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )

    assert read_staff_claims(token) is None


def test_garbage_token():
    assert read_staff_claims("not-a-jwt") is None


def test_token_signed_with_another_key_is_rejected():
    token = jwt.encode(
        {"sub": str(uuid4()), "clinic_id": str(uuid4()), "type": "access"},
        "dev-secret-change-me-in-production",
        algorithm=settings.jwt_algorithm,
    )

    assert read_staff_claims(token) is None
