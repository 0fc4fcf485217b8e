"""Unit tests for password hashing, lockout and reset-token rules"""

import pytest
from datetime import datetime, timedelta
from mipago_gateway.domain.exceptions import InvalidToken, ValidationError
from mipago_gateway.domain.models import Account, KYCStatus, PasswordResetToken
from mipago_gateway.domain.security import (
    ensure_token_usable,
    hash_password,
    is_locked,
    lock_expired,
    lockout_deadline,
    new_reset_token,
    validate_password_format,
    verify_password,
)

NOW = datetime(2024, 6, 1, 12, 0, 0)


def make_account(locked_until=None) -> Account:
    return Account(
        id="acc-1",
        balance_cents=0,
        kyc_status=KYCStatus.PENDING,
        transfer_limit_cents=1000000,
        created_at=NOW - timedelta(days=1),
        locked_until=locked_until,
    )


def test_hash_format():
    """Test stored hash is 16-byte salt hex, a dot, then 64-byte digest hex"""
    stored = hash_password("correct horse")
    salt_hex, hash_hex = stored.split(".")

    assert len(bytes.fromhex(salt_hex)) == 16
    assert len(bytes.fromhex(hash_hex)) == 64


def test_hash_is_salted():
    """Test the same password hashes differently each time"""
    assert hash_password("correct horse") != hash_password("correct horse")


def test_verify_password():
    """Test verification accepts the right password only"""
    stored = hash_password("correct horse")

    assert verify_password("correct horse", stored) is True
    assert verify_password("wrong horse", stored) is False


def test_verify_password_malformed_hash():
    """Test missing or corrupt hashes never verify"""
    assert verify_password("anything", None) is False
    assert verify_password("anything", "no-separator") is False
    assert verify_password("anything", "zz.zz") is False


def test_password_minimum_length():
    """Test passwords shorter than 8 characters are rejected"""
    with pytest.raises(ValidationError):
        validate_password_format("short")
    with pytest.raises(ValidationError):
        validate_password_format(None)
    validate_password_format("eightchr")


def test_lock_state():
    """Test active and expired locks"""
    active = make_account(locked_until=NOW + timedelta(minutes=5))
    expired = make_account(locked_until=NOW - timedelta(minutes=5))
    never = make_account()

    assert is_locked(active, NOW) and not lock_expired(active, NOW)
    assert not is_locked(expired, NOW) and lock_expired(expired, NOW)
    assert not is_locked(never, NOW) and not lock_expired(never, NOW)


def test_lockout_deadline_is_one_hour():
    assert lockout_deadline(NOW) == NOW + timedelta(hours=1)


def test_reset_token_shape():
    """Test token is 32 random bytes in hex, valid for 24 hours"""
    token = new_reset_token("acc-1", NOW)

    assert len(token.token) == 64
    assert token.expires_at == NOW + timedelta(hours=24)
    assert token.used is False


def test_token_usable_checks():
    """Test unknown, used and expired tokens are rejected"""
    token = PasswordResetToken(token="t", account_id="acc-1", issued_at=NOW, expires_at=NOW + timedelta(hours=24))

    assert ensure_token_usable(token, NOW) is token

    with pytest.raises(InvalidToken):
        ensure_token_usable(None, NOW)
    with pytest.raises(InvalidToken):
        ensure_token_usable(token, NOW + timedelta(hours=25))

    token.used = True
    with pytest.raises(InvalidToken):
        ensure_token_usable(token, NOW)
