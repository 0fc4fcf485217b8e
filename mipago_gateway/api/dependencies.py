"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from mipago_gateway.config import settings
from mipago_gateway.domain.ports import ClearingGateway
from mipago_gateway.infrastructure.clients.clearing import HttpClearingClient, SimulatedClearing
from mipago_gateway.infrastructure.database.repositories import SqlWalletRepository
from mipago_gateway.infrastructure.database.session import get_db
from mipago_gateway.services.accounts import AccountService
from mipago_gateway.services.credits import CreditService
from mipago_gateway.services.kyc import KYCService
from mipago_gateway.services.transfers import TransferService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_repository(db: Session = Depends(get_db)) -> SqlWalletRepository:
    """Wallet repository bound to the request's session"""
    return SqlWalletRepository(db)


def get_clearing_gateway() -> ClearingGateway:
    """Clearing client selected by CLEARING_MODE"""
    if settings.clearing_mode == "http":
        return HttpClearingClient()
    return SimulatedClearing()


def get_credit_service(repo: SqlWalletRepository = Depends(get_repository)) -> CreditService:
    return CreditService(repo)


def get_transfer_service(
    repo: SqlWalletRepository = Depends(get_repository),
    clearing: ClearingGateway = Depends(get_clearing_gateway),
) -> TransferService:
    return TransferService(repo, clearing)


def get_account_service(repo: SqlWalletRepository = Depends(get_repository)) -> AccountService:
    return AccountService(repo)


def get_kyc_service(repo: SqlWalletRepository = Depends(get_repository)) -> KYCService:
    return KYCService(repo)
