"""Password hashing, lockout and reset-token rules"""

import secrets
from datetime import datetime, timedelta
from typing import Optional

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from mipago_gateway.config import Settings, settings as default_settings
from mipago_gateway.domain.exceptions import InvalidToken, ValidationError
from mipago_gateway.domain.models import Account, PasswordResetToken

SALT_BYTES = 16
DIGEST_BYTES = 64
RESET_TOKEN_BYTES = 32


def _kdf(salt: bytes, iterations: int, length: int = DIGEST_BYTES) -> PBKDF2HMAC:
    return PBKDF2HMAC(algorithm=hashes.SHA512(), length=length, salt=salt, iterations=iterations)


def hash_password(password: str, iterations: Optional[int] = None) -> str:
    """PBKDF2-HMAC-SHA512 over a fresh 16-byte salt, stored as "salt.hash" hex"""
    iterations = iterations or default_settings.password_hash_iterations
    salt = secrets.token_bytes(SALT_BYTES)
    digest = _kdf(salt, iterations).derive(password.encode("utf-8"))
    return f"{salt.hex()}.{digest.hex()}"


def verify_password(password: str, stored_hash: Optional[str], iterations: Optional[int] = None) -> bool:
    if not stored_hash or "." not in stored_hash:
        return False

    iterations = iterations or default_settings.password_hash_iterations
    salt_hex, hash_hex = stored_hash.split(".", 1)
    try:
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    if not salt or not expected:
        return False

    # verify() compares in constant time
    try:
        _kdf(salt, iterations, length=len(expected)).verify(password.encode("utf-8"), expected)
    except InvalidKey:
        return False
    return True


def validate_password_format(password: Optional[str], settings: Settings = default_settings) -> None:
    if not password or len(password) < settings.min_password_length:
        raise ValidationError(
            f"Password must be at least {settings.min_password_length} characters",
            context={"min_length": settings.min_password_length},
        )


def lock_expired(account: Account, now: datetime) -> bool:
    """Lock set but already past; status checks clear it lazily"""
    return account.locked_until is not None and account.locked_until <= now


def is_locked(account: Account, now: datetime) -> bool:
    return account.locked_until is not None and account.locked_until > now


def lockout_deadline(now: datetime, settings: Settings = default_settings) -> datetime:
    return now + timedelta(minutes=settings.lockout_minutes)


def new_reset_token(account_id: str, now: datetime, settings: Settings = default_settings) -> PasswordResetToken:
    return PasswordResetToken(
        token=secrets.token_hex(RESET_TOKEN_BYTES),
        account_id=account_id,
        issued_at=now,
        expires_at=now + timedelta(hours=settings.reset_token_ttl_hours),
    )


def ensure_token_usable(token: Optional[PasswordResetToken], now: datetime) -> PasswordResetToken:
    """
    Raises:
        InvalidToken: unknown, already used, or expired
    """
    if token is None:
        raise InvalidToken("Invalid or expired reset token")
    if token.used:
        raise InvalidToken("Reset token has already been used")
    if token.expires_at <= now:
        raise InvalidToken("Reset token has expired", context={"expired_at": token.expires_at.isoformat()})
    return token
