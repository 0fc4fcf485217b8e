"""SQLAlchemy ORM models for the wallet store"""

import uuid
from sqlalchemy import (
    Column,
    String,
    BigInteger,
    Boolean,
    Numeric,
    DateTime,
    Date,
    Integer,
    ForeignKey,
    Text,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class WalletAccount(Base):
    """Wallet account: ledger balance, KYC tier and login lockout state"""

    __tablename__ = "wallet_account"
    __table_args__ = (CheckConstraint("balance_cents >= 0", name="ck_wallet_account_balance_non_negative"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(Text, nullable=True, unique=True)
    balance_cents = Column(BigInteger, nullable=False, default=0)
    kyc_status = Column(String(20), nullable=False, default="pending")
    transfer_limit_cents = Column(BigInteger, nullable=False)
    declared_monthly_income_cents = Column(BigInteger, nullable=False, default=0)
    has_default_history = Column(Boolean, nullable=False, default=False)
    external_score = Column(Integer, nullable=True)
    password_hash = Column(Text, nullable=True)
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    locked_until = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    credits = relationship("WalletCredit", back_populates="account", cascade="all, delete-orphan")


class WalletCredit(Base):
    """Quick or Normal credit agreement"""

    __tablename__ = "wallet_credit"

    id = Column(String(36), primary_key=True, default=_uuid)
    account_id = Column(String(36), ForeignKey("wallet_account.id", ondelete="CASCADE"), nullable=False, index=True)
    product_type = Column(String(10), nullable=False)
    principal_cents = Column(BigInteger, nullable=False)
    total_payable_cents = Column(BigInteger, nullable=False)
    term_units = Column(Integer, nullable=False)
    term_days = Column(Integer, nullable=False)
    tea_rate = Column(Numeric(6, 2), nullable=False)
    cft_rate = Column(Numeric(6, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pre_approved", index=True)
    installment_count = Column(Integer, nullable=False)
    disbursed_at = Column(DateTime, nullable=True)
    due_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    account = relationship("WalletAccount", back_populates="credits")
    installments = relationship(
        "WalletInstallment",
        back_populates="credit",
        cascade="all, delete-orphan",
        order_by="WalletInstallment.sequence_no",
    )


class WalletInstallment(Base):
    """Individual installment within a credit's repayment plan"""

    __tablename__ = "wallet_installment"
    __table_args__ = (UniqueConstraint("credit_id", "sequence_no", name="uq_installment_credit_sequence"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    credit_id = Column(String(36), ForeignKey("wallet_credit.id", ondelete="CASCADE"), nullable=False)
    sequence_no = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    credit = relationship("WalletCredit", back_populates="installments")


class WalletTransfer(Base):
    """Peer or external transfer and its settlement outcome"""

    __tablename__ = "wallet_transfer"

    id = Column(String(36), primary_key=True, default=_uuid)
    origin_account_id = Column(String(36), ForeignKey("wallet_account.id"), nullable=False, index=True)
    destination_kind = Column(String(10), nullable=False)
    destination_account_id = Column(String(36), nullable=True)
    destination_account_number = Column(String(22), nullable=True)
    amount_cents = Column(BigInteger, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)
    reference = Column(Text, nullable=True)
    transaction_reference = Column(String(100), nullable=True, unique=True)
    bank_name = Column(Text, nullable=True)
    fraud_risk = Column(String(10), nullable=False, default="low")
    requires_verification = Column(Boolean, nullable=False, default=False)
    failure_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)
    settled_at = Column(DateTime, nullable=True)


class WalletKYCDocument(Base):
    """Uploaded identity document"""

    __tablename__ = "wallet_kyc_document"

    id = Column(String(36), primary_key=True, default=_uuid)
    account_id = Column(String(36), ForeignKey("wallet_account.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(20), nullable=False)
    document_url = Column(Text, nullable=False)
    uploaded_at = Column(DateTime, nullable=False)
    validation = Column(String(20), nullable=False, default="pending")
    rejection_reason = Column(Text, nullable=True)
    validated_at = Column(DateTime, nullable=True)


class WalletResetToken(Base):
    """Single-use password reset token"""

    __tablename__ = "wallet_reset_token"

    token = Column(String(128), primary_key=True)
    account_id = Column(String(36), ForeignKey("wallet_account.id", ondelete="CASCADE"), nullable=False, index=True)
    issued_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    used_at = Column(DateTime, nullable=True)
