"""Pytest fixtures for testing"""

import uuid
import pytest
from datetime import timedelta
from typing import Callable, Generator, Optional
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from mipago_gateway.api.dependencies import get_clearing_gateway
from mipago_gateway.api.main import create_app
from mipago_gateway.config import settings
from mipago_gateway.domain.exceptions import ClearingError
from mipago_gateway.domain.models import Account, KYCStatus
from mipago_gateway.domain.ports import ClearingConfirmation, ClearingRequest
from mipago_gateway.domain.security import hash_password
from mipago_gateway.infrastructure.clients.clearing import SimulatedClearing
from mipago_gateway.infrastructure.database.models import Base
from mipago_gateway.infrastructure.database.repositories import SqlWalletRepository
from mipago_gateway.infrastructure.database.session import build_engine, get_db
from mipago_gateway.utils.date_utils import utcnow


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "s3cret-pass"


class RejectingClearing:
    """Clearing stub that refuses every submission"""

    def __init__(self):
        self.requests = []

    def submit(self, request: ClearingRequest) -> ClearingConfirmation:
        self.requests.append(request)
        raise ClearingError("Destination account closed", context={"status_code": 422})


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def repository(db: Session) -> SqlWalletRepository:
    return SqlWalletRepository(db)


@pytest.fixture
def make_account(repository: SqlWalletRepository) -> Callable[..., Account]:
    """Factory for stored accounts; age_days backdates created_at"""

    def _make(
        balance_cents: int = 0,
        kyc_status: KYCStatus = KYCStatus.APPROVED,
        age_days: int = 60,
        income_cents: int = 0,
        has_default_history: bool = False,
        transfer_limit_cents: Optional[int] = None,
        external_score: Optional[int] = None,
        password: Optional[str] = PASSWORD,
    ) -> Account:
        if transfer_limit_cents is None:
            transfer_limit_cents = (
                settings.kyc_approved_transfer_limit_cents
                if kyc_status == KYCStatus.APPROVED
                else settings.base_transfer_limit_cents
            )
        account = Account(
            id=str(uuid.uuid4()),
            balance_cents=balance_cents,
            kyc_status=kyc_status,
            transfer_limit_cents=transfer_limit_cents,
            created_at=utcnow() - timedelta(days=age_days),
            declared_monthly_income_cents=income_cents,
            has_default_history=has_default_history,
            external_score=external_score,
            password_hash=hash_password(password) if password else None,
        )
        with repository.transaction():
            return repository.create_account(account)

    return _make


@pytest.fixture
def clearing() -> SimulatedClearing:
    return SimulatedClearing()


@pytest.fixture
def rejecting_clearing() -> RejectingClearing:
    return RejectingClearing()


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clearing_gateway] = SimulatedClearing
    return TestClient(app)
