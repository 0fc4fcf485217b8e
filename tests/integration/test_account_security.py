"""Integration tests for account administration, login lockout and password reset"""

import pytest
from datetime import timedelta
from mipago_gateway.domain.models import KYCStatus, PasswordResetToken
from mipago_gateway.domain.results import FailureKind
from mipago_gateway.services.accounts import AccountService
from mipago_gateway.utils.date_utils import utcnow

PASSWORD = "s3cret-pass"

NEW_PASSWORD = "n3w-password"


@pytest.fixture
def service(repository) -> AccountService:
    return AccountService(repository)


def fail_login(service, account_id, times):
    return [service.login(account_id, "wrong-password") for _ in range(times)]


def test_open_account_defaults(service, repository):
    """Test a new account starts pending with the base transfer limit"""
    account = service.open_account(email="ana@example.com", declared_monthly_income_cents=300000).value

    stored = repository.get_account(account.id)
    assert stored.kyc_status == KYCStatus.PENDING
    assert stored.balance_cents == 0
    assert stored.transfer_limit_cents == 1000000
    assert stored.declared_monthly_income_cents == 300000


def test_open_account_with_short_password(service):
    result = service.open_account(password="short")

    assert result.kind == FailureKind.VALIDATION


def test_deposit_and_profile(service, make_account):
    account = make_account()

    assert service.deposit(account.id, 15000).value == 15000
    assert service.deposit(account.id, 0).kind == FailureKind.VALIDATION
    assert service.declare_income(account.id, 250000).value.declared_monthly_income_cents == 250000
    assert service.set_external_score(account.id, 75).value.external_score == 75
    assert service.set_external_score(account.id, 101).kind == FailureKind.VALIDATION


def test_login_success(service, make_account):
    account = make_account()

    result = service.login(account.id, PASSWORD)

    assert result.ok
    assert result.value.account_id == account.id


def test_login_unknown_account(service):
    result = service.login("missing", PASSWORD)

    assert result.code == "INVALID_CREDENTIALS"


def test_success_before_fifth_failure_resets_counter(service, make_account):
    """Test four failures followed by a success clears the counter"""
    account = make_account()
    failures = fail_login(service, account.id, 4)
    assert all(f.code == "INVALID_CREDENTIALS" for f in failures)
    assert failures[-1].context["remaining_attempts"] == 1

    assert service.login(account.id, PASSWORD).ok

    status = service.security_status(account.id).value
    assert status.failed_login_attempts == 0
    assert status.locked is False


def test_fifth_failure_locks_for_one_hour(service, repository, make_account):
    """Test the fifth failure locks the account for an hour"""
    account = make_account()
    before = utcnow()

    failures = fail_login(service, account.id, 5)

    assert [f.code for f in failures[:4]] == ["INVALID_CREDENTIALS"] * 4
    assert failures[4].code == "ACCOUNT_LOCKED"
    locked_until = repository.get_account(account.id).locked_until
    assert before + timedelta(minutes=59) < locked_until <= utcnow() + timedelta(hours=1)


def test_attempt_while_locked_does_not_extend(service, repository, make_account):
    """Test a sixth attempt, even with the right password, is refused and not counted"""
    account = make_account()
    fail_login(service, account.id, 5)
    locked = repository.get_account(account.id)

    result = service.login(account.id, PASSWORD)

    assert result.kind == FailureKind.UNAUTHORIZED
    assert result.code == "ACCOUNT_LOCKED"
    after = repository.get_account(account.id)
    assert after.locked_until == locked.locked_until
    assert after.failed_login_attempts == 5


def test_expired_lock_is_cleared_lazily(service, repository, make_account):
    """Test a status check clears a lock that has already expired"""
    account = make_account()
    with repository.transaction():
        for _ in range(5):
            repository.record_failed_login(account.id)
        repository.lock_account(account.id, utcnow() - timedelta(minutes=1))

    status = service.security_status(account.id).value

    assert status.locked is False
    assert status.failed_login_attempts == 0
    assert service.login(account.id, PASSWORD).ok


def test_admin_unlock(service, make_account):
    account = make_account()
    fail_login(service, account.id, 5)

    assert service.unlock(account.id).value.locked is False
    assert service.login(account.id, PASSWORD).ok


def test_password_reset_flow(service, make_account):
    """Test a reset token sets a new password once and clears the lockout"""
    account = make_account()
    fail_login(service, account.id, 5)
    token = service.request_password_reset(account.id).value
    assert len(token.token) == 64

    assert service.confirm_password_reset(token.token, NEW_PASSWORD).ok

    assert service.login(account.id, NEW_PASSWORD).ok
    assert service.login(account.id, PASSWORD).code == "INVALID_CREDENTIALS"

    reused = service.confirm_password_reset(token.token, "another-password")
    assert reused.code == "INVALID_TOKEN"


def test_reset_token_checked_before_password(service, make_account):
    """Test a bad token wins over a bad password; a good token still needs a valid password"""
    account = make_account()

    assert service.confirm_password_reset("f" * 64, "x").code == "INVALID_TOKEN"

    token = service.request_password_reset(account.id).value
    assert service.confirm_password_reset(token.token, "short").kind == FailureKind.VALIDATION
    assert service.confirm_password_reset(token.token, NEW_PASSWORD).ok


def test_expired_reset_token(service, repository, make_account):
    """Test a token older than 24 hours is invalid even with a valid password"""
    account = make_account()
    issued = utcnow() - timedelta(hours=25)
    with repository.transaction():
        repository.create_reset_token(
            PasswordResetToken(token="a" * 64, account_id=account.id, issued_at=issued, expires_at=issued + timedelta(hours=24))
        )

    result = service.confirm_password_reset("a" * 64, NEW_PASSWORD)

    assert result.code == "INVALID_TOKEN"
    assert service.login(account.id, PASSWORD).ok


def test_set_password(service, make_account):
    account = make_account(password=None)

    assert service.login(account.id, PASSWORD).code == "INVALID_CREDENTIALS"
    assert service.set_password(account.id, "short").kind == FailureKind.VALIDATION
    assert service.set_password(account.id, NEW_PASSWORD).ok
    assert service.login(account.id, NEW_PASSWORD).ok
