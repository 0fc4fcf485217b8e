"""Lookups shared by the service layer"""

from enum import Enum
from typing import Type, TypeVar

from mipago_gateway.domain.exceptions import NotFoundError, ValidationError
from mipago_gateway.domain.models import Account, Credit
from mipago_gateway.domain.ports import WalletRepository

E = TypeVar("E", bound=Enum)


def require_account(repo: WalletRepository, account_id: str) -> Account:
    account = repo.get_account(account_id)
    if account is None:
        raise NotFoundError(f"Account {account_id} not found", context={"account_id": account_id})
    return account


def require_credit(repo: WalletRepository, credit_id: str) -> Credit:
    credit = repo.get_credit(credit_id)
    if credit is None:
        raise NotFoundError(f"Credit {credit_id} not found", context={"credit_id": credit_id})
    return credit


def parse_choice(enum_cls: Type[E], raw, field: str) -> E:
    """Coerce a raw value into an enum member or raise ValidationError"""
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Invalid {field} '{raw}'. Allowed: {allowed}", context={field: raw}) from None


def require_positive(value, field: str) -> int:
    if value is None or value <= 0:
        raise ValidationError(f"{field} must be greater than 0", context={field: value})
    return value
