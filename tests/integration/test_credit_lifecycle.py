"""Integration tests for the credit lifecycle against the SQL repository"""

import pytest
from mipago_gateway.domain.models import CreditStatus, KYCStatus, ProductType
from mipago_gateway.domain.results import FailureKind
from mipago_gateway.services.credits import CreditService


@pytest.fixture
def service(repository) -> CreditService:
    return CreditService(repository)


def test_create_quick_credit(service, repository, make_account):
    """Test an eligible account gets a pre-approved credit priced from the rate table"""
    account = make_account(balance_cents=200000)

    result = service.create_credit(account.id, ProductType.QUICK, 100000, 30)

    assert result.ok
    credit = result.value
    assert credit.status == CreditStatus.PRE_APPROVED
    assert credit.total_payable_cents == 111000
    assert credit.installment_count == 1
    assert repository.get_credit(credit.id) is not None
    assert repository.list_installments(credit.id) == []


def test_invalid_term_leaves_no_records(service, repository, make_account):
    """Test Quick 45 days fails before anything is stored"""
    account = make_account()

    result = service.create_credit(account.id, "quick", 100000, 45)

    assert not result.ok
    assert result.kind == FailureKind.VALIDATION
    assert result.code == "INVALID_TERM"
    assert repository.list_credits(account.id) == []


def test_normal_nine_months_is_invalid_term(service, make_account):
    account = make_account(income_cents=500000)

    result = service.create_credit(account.id, "normal", 300000, 9)

    assert result.code == "INVALID_TERM"


def test_ineligible_account_is_denied(service, repository, make_account):
    """Test denials come back as business-rule failures with remediation"""
    account = make_account(kyc_status=KYCStatus.IN_REVIEW)

    result = service.create_credit(account.id, "quick", 100000, 30)

    assert result.kind == FailureKind.BUSINESS_RULE_DENIED
    assert result.code == "KYC_NOT_APPROVED"
    assert "remediation" in result.context
    assert repository.list_credits(account.id) == []


def test_amount_above_maximum_denied(service, make_account):
    account = make_account()

    result = service.create_credit(account.id, "quick", 5000100, 30)

    assert result.code == "AMOUNT_ABOVE_MAXIMUM"


def test_unknown_account(service):
    result = service.create_credit("missing", "quick", 100000, 30)

    assert result.kind == FailureKind.NOT_FOUND


def test_disburse_debits_once_and_persists_plan(service, repository, make_account):
    """Test disbursement moves to in_progress, debits the principal and stores the plan"""
    account = make_account(balance_cents=200000)
    credit = service.create_credit(account.id, "quick", 100000, 90).value

    result = service.approve_and_disburse(credit.id)

    assert result.ok
    detail = result.value
    assert detail.credit.status == CreditStatus.IN_PROGRESS
    assert detail.credit.disbursed_at is not None
    assert [i.sequence_no for i in detail.installments] == [1, 2, 3]
    assert sum(i.amount_cents for i in detail.installments) == credit.total_payable_cents
    assert repository.get_account(account.id).balance_cents == 100000


def test_second_disbursement_fails_without_debit(service, repository, make_account):
    """Test a repeated disbursement is an invalid state and never debits again"""
    account = make_account(balance_cents=300000)
    credit = service.create_credit(account.id, "quick", 100000, 30).value
    assert service.approve_and_disburse(credit.id).ok

    second = service.approve_and_disburse(credit.id)

    assert second.kind == FailureKind.INVALID_STATE
    assert repository.get_account(account.id).balance_cents == 200000
    assert len(repository.list_installments(credit.id)) == 1


def test_disburse_with_insufficient_balance_persists_nothing(service, repository, make_account):
    """Test a failed debit rolls back the status flip and the installments"""
    account = make_account(balance_cents=50000)
    credit = service.create_credit(account.id, "quick", 100000, 60).value

    result = service.approve_and_disburse(credit.id)

    assert result.kind == FailureKind.INSUFFICIENT_FUNDS
    assert repository.get_credit(credit.id).status == CreditStatus.PRE_APPROVED
    assert repository.list_installments(credit.id) == []
    assert repository.get_account(account.id).balance_cents == 50000


def test_default_transition_flags_account(service, repository, make_account):
    """Test moving a credit to default records default history on the account"""
    account = make_account(balance_cents=200000)
    credit = service.create_credit(account.id, "quick", 100000, 30).value
    service.approve_and_disburse(credit.id)

    result = service.transition(credit.id, "default")

    assert result.value.status == CreditStatus.DEFAULT
    assert repository.get_account(account.id).has_default_history is True

    followup = service.check_eligibility(account.id, "quick")
    assert followup.value.eligible is False
    assert followup.value.denial.code == "DEFAULT_HISTORY"


def test_backward_transition_requires_override(service, make_account):
    """Test paid credits cannot reopen without an admin override"""
    account = make_account(balance_cents=200000)
    credit = service.create_credit(account.id, "quick", 100000, 30).value
    service.approve_and_disburse(credit.id)
    service.transition(credit.id, CreditStatus.PAID)

    rejected = service.transition(credit.id, CreditStatus.IN_PROGRESS)
    assert rejected.kind == FailureKind.INVALID_STATE

    forced = service.transition(credit.id, CreditStatus.IN_PROGRESS, admin_override=True)
    assert forced.value.status == CreditStatus.IN_PROGRESS


def test_cannot_skip_disbursement(service, make_account):
    account = make_account(balance_cents=200000)
    credit = service.create_credit(account.id, "quick", 100000, 30).value

    result = service.transition(credit.id, "in_progress")

    assert result.kind == FailureKind.INVALID_STATE


def test_outstanding_credit_blocks_normal(service, make_account):
    """Test an in-progress credit blocks a Normal application"""
    account = make_account(balance_cents=200000, income_cents=1000000)
    quick = service.create_credit(account.id, "quick", 100000, 30).value
    service.approve_and_disburse(quick.id)

    result = service.create_credit(account.id, "normal", 500000, 6)

    assert result.code == "OUTSTANDING_CREDIT"


def test_get_and_list_credits(service, make_account):
    account = make_account(balance_cents=500000, income_cents=1000000)
    credit = service.create_credit(account.id, "normal", 300000, 3).value
    service.approve_and_disburse(credit.id)

    detail = service.get_credit(credit.id).value
    assert detail.credit.id == credit.id
    assert len(detail.installments) == 3

    listed = service.list_credits(account.id).value
    assert [c.id for c in listed] == [credit.id]


def test_simulate_does_not_store(service, repository):
    result = service.simulate("normal", 1000000, 12)

    assert result.value.total_payable_cents == 1957000

    invalid = service.simulate("premium", 1000000, 12)
    assert invalid.kind == FailureKind.VALIDATION
