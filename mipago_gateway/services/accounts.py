"""Account administration and security: passwords, login lockout, password reset"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Optional

from mipago_gateway.config import Settings, settings as default_settings
from mipago_gateway.domain.exceptions import AccountLocked, InvalidCredentials, InvalidToken, ValidationError
from mipago_gateway.domain.models import Account, KYCStatus, LoginOutcome, PasswordResetToken, SecurityStatus
from mipago_gateway.domain.ports import WalletRepository
from mipago_gateway.domain.results import returns_result
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
from mipago_gateway.infrastructure.observability.logging import log_security_event
from mipago_gateway.infrastructure.observability.metrics import lockout_counter, login_counter
from mipago_gateway.services.support import require_account, require_positive
from mipago_gateway.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class AccountService:
    """Wallet accounts: opening, funding, profile and credential security"""

    def __init__(self, repository: WalletRepository, settings: Settings = default_settings):
        self.repo = repository
        self.settings = settings

    def _clear_expired_lock(self, account: Account, now: datetime) -> Account:
        """An expired lock is cleared (and the counter reset) on the next status check"""
        if not lock_expired(account, now):
            return account
        with self.repo.transaction():
            self.repo.unlock_account(account.id)
        log_security_event("lock_expired", account.id, "unlocked")
        return replace(account, failed_login_attempts=0, locked_until=None)

    # Administration

    @returns_result
    def open_account(
        self,
        email: Optional[str] = None,
        declared_monthly_income_cents: int = 0,
        password: Optional[str] = None,
    ) -> Account:
        if declared_monthly_income_cents < 0:
            raise ValidationError("Declared income cannot be negative")
        password_hash = None
        if password is not None:
            validate_password_format(password, self.settings)
            password_hash = hash_password(password, self.settings.password_hash_iterations)

        account = Account(
            id=str(uuid.uuid4()),
            email=email,
            balance_cents=0,
            kyc_status=KYCStatus.PENDING,
            transfer_limit_cents=self.settings.base_transfer_limit_cents,
            declared_monthly_income_cents=declared_monthly_income_cents,
            password_hash=password_hash,
            created_at=utcnow(),
        )
        with self.repo.transaction():
            stored = self.repo.create_account(account)
        logger.info(f"Account opened: {stored.id}", extra={"account_id": stored.id})
        return stored

    @returns_result
    def get_account(self, account_id: str) -> Account:
        return require_account(self.repo, account_id)

    @returns_result
    def deposit(self, account_id: str, amount_cents: int) -> int:
        """Credit funds to an account; returns the new balance"""
        require_positive(amount_cents, "amount_cents")
        require_account(self.repo, account_id)
        with self.repo.transaction():
            balance = self.repo.adjust_balance(account_id, amount_cents)
        logger.info(
            f"Deposit of {amount_cents} cents to account {account_id}",
            extra={"account_id": account_id, "amount_cents": amount_cents},
        )
        return balance

    @returns_result
    def declare_income(self, account_id: str, monthly_income_cents: int) -> Account:
        require_positive(monthly_income_cents, "monthly_income_cents")
        with self.repo.transaction():
            return self.repo.update_account_profile(account_id, declared_monthly_income_cents=monthly_income_cents)

    @returns_result
    def set_external_score(self, account_id: str, score: int) -> Account:
        if score is None or not 0 <= score <= 100:
            raise ValidationError("External score must be between 0 and 100", context={"score": score})
        with self.repo.transaction():
            return self.repo.update_account_profile(account_id, external_score=score)

    # Credentials

    @returns_result
    def set_password(self, account_id: str, password: str) -> None:
        validate_password_format(password, self.settings)
        require_account(self.repo, account_id)
        with self.repo.transaction():
            self.repo.store_password_hash(account_id, hash_password(password, self.settings.password_hash_iterations))
        log_security_event("password_set", account_id, "updated")

    @returns_result
    def login(self, account_id: str, password: str) -> LoginOutcome:
        """
        Verify a password with lockout after repeated failures.

        While locked, attempts are rejected without being counted and the
        lock is not extended. The attempt that reaches the threshold locks
        the account for the configured window.

        Raises:
            AccountLocked: account is locked, or this attempt locked it
            InvalidCredentials: wrong password or unknown account
        """
        account = self.repo.get_account(account_id)
        if account is None:
            login_counter.labels(outcome="invalid_credentials").inc()
            raise InvalidCredentials("Invalid credentials")

        now = utcnow()
        account = self._clear_expired_lock(account, now)
        if is_locked(account, now):
            login_counter.labels(outcome="locked").inc()
            log_security_event("login", account.id, "denied", reason="locked")
            raise AccountLocked(
                "Account is temporarily locked",
                context={"locked_until": account.locked_until.isoformat()},
            )

        if verify_password(password or "", account.password_hash, self.settings.password_hash_iterations):
            if account.failed_login_attempts or account.locked_until:
                with self.repo.transaction():
                    self.repo.unlock_account(account.id)
            login_counter.labels(outcome="success").inc()
            log_security_event("login", account.id, "success")
            return LoginOutcome(account_id=account.id, authenticated_at=now)

        with self.repo.transaction():
            attempts = self.repo.record_failed_login(account.id)
            locked_until = None
            if attempts >= self.settings.max_failed_logins:
                locked_until = lockout_deadline(now, self.settings)
                self.repo.lock_account(account.id, locked_until)

        if locked_until is not None:
            login_counter.labels(outcome="locked").inc()
            lockout_counter.inc()
            log_security_event("login", account.id, "locked", attempts=attempts, locked_until=locked_until.isoformat())
            raise AccountLocked(
                f"Account locked after {attempts} failed attempts",
                context={"locked_until": locked_until.isoformat(), "failed_attempts": attempts},
            )

        login_counter.labels(outcome="invalid_credentials").inc()
        log_security_event("login", account.id, "failed", attempts=attempts)
        raise InvalidCredentials(
            "Invalid credentials",
            context={"remaining_attempts": self.settings.max_failed_logins - attempts},
        )

    @returns_result
    def security_status(self, account_id: str) -> SecurityStatus:
        now = utcnow()
        account = self._clear_expired_lock(require_account(self.repo, account_id), now)
        return SecurityStatus(
            account_id=account.id,
            locked=is_locked(account, now),
            failed_login_attempts=account.failed_login_attempts,
            locked_until=account.locked_until,
        )

    @returns_result
    def unlock(self, account_id: str) -> SecurityStatus:
        """Admin unlock: clears the lock and the failure counter"""
        require_account(self.repo, account_id)
        with self.repo.transaction():
            self.repo.unlock_account(account_id)
        log_security_event("admin_unlock", account_id, "unlocked")
        return SecurityStatus(account_id=account_id, locked=False, failed_login_attempts=0)

    @returns_result
    def request_password_reset(self, account_id: str) -> PasswordResetToken:
        """Issue a single-use reset token; delivery to the user happens elsewhere"""
        require_account(self.repo, account_id)
        token = new_reset_token(account_id, utcnow(), self.settings)
        with self.repo.transaction():
            stored = self.repo.create_reset_token(token)
        log_security_event("password_reset_requested", account_id, "issued", expires_at=stored.expires_at.isoformat())
        return stored

    @returns_result
    def confirm_password_reset(self, token: str, new_password: str) -> None:
        """
        Set a new password with a reset token.

        The token is checked before the password format, so an unusable
        token always yields InvalidToken.
        """
        now = utcnow()
        stored = ensure_token_usable(self.repo.get_reset_token(token), now)
        validate_password_format(new_password, self.settings)

        with self.repo.transaction():
            if not self.repo.consume_reset_token(token, now):
                raise InvalidToken("Reset token has already been used")
            self.repo.store_password_hash(
                stored.account_id, hash_password(new_password, self.settings.password_hash_iterations)
            )
            self.repo.unlock_account(stored.account_id)

        log_security_event("password_reset", stored.account_id, "completed")
