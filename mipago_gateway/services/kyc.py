"""KYC workflow: document upload, per-document review and account approval"""

import logging
import uuid
from typing import List, Optional

from mipago_gateway.config import Settings, settings as default_settings
from mipago_gateway.domain.exceptions import InvalidStateError, NotFoundError, ValidationError
from mipago_gateway.domain.kyc import approval_denial, clean_rejection_reason
from mipago_gateway.domain.models import Account, DocumentKind, DocumentValidation, KYCDocument, KYCStatus
from mipago_gateway.domain.ports import WalletRepository
from mipago_gateway.domain.results import Failure, returns_result
from mipago_gateway.infrastructure.observability.metrics import kyc_decision_counter
from mipago_gateway.services.support import parse_choice, require_account, require_positive
from mipago_gateway.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class KYCService:
    def __init__(self, repository: WalletRepository, settings: Settings = default_settings):
        self.repo = repository
        self.settings = settings

    @returns_result
    def upload_document(self, account_id: str, kind, document_url: str) -> KYCDocument:
        """Store a document reference; a pending account moves to in_review"""
        document_kind = parse_choice(DocumentKind, kind, "kind")
        if not document_url or not document_url.strip():
            raise ValidationError("document_url is required")
        account = require_account(self.repo, account_id)

        document = KYCDocument(
            id=str(uuid.uuid4()),
            account_id=account.id,
            kind=document_kind,
            document_url=document_url.strip(),
            uploaded_at=utcnow(),
        )
        with self.repo.transaction():
            stored = self.repo.store_kyc_document(document)
            if account.kyc_status == KYCStatus.PENDING:
                self.repo.update_kyc_status(account.id, KYCStatus.IN_REVIEW)

        logger.info(
            f"KYC document uploaded: {document_kind.value}",
            extra={"account_id": account.id, "document_id": stored.id, "kind": document_kind.value},
        )
        return stored

    @returns_result
    def approve(self, account_id: str) -> Account:
        """
        Approve an account once an ID and a selfie are on file.

        Status and the raised transfer limit are written in one update.
        """
        account = require_account(self.repo, account_id)
        if account.kyc_status == KYCStatus.APPROVED:
            raise InvalidStateError("KYC is already approved", context={"kyc_status": account.kyc_status.value})

        denial = approval_denial(self.repo.list_kyc_documents(account.id))
        if denial:
            kyc_decision_counter.labels(outcome="denied").inc()
            logger.info(
                f"KYC approval denied: {denial.message}",
                extra={"account_id": account.id, "code": denial.code},
            )
            return Failure.from_denial(denial)

        with self.repo.transaction():
            approved = self.repo.update_kyc_status(
                account.id,
                KYCStatus.APPROVED,
                transfer_limit_cents=self.settings.kyc_approved_transfer_limit_cents,
            )

        kyc_decision_counter.labels(outcome="approved").inc()
        logger.info(
            "KYC approved",
            extra={"account_id": account.id, "transfer_limit_cents": approved.transfer_limit_cents},
        )
        return approved

    @returns_result
    def reject(self, account_id: str, reason: str) -> Account:
        """Reject KYC; the transfer limit is left as it was"""
        reason = clean_rejection_reason(reason)
        account = require_account(self.repo, account_id)
        with self.repo.transaction():
            rejected = self.repo.update_kyc_status(account.id, KYCStatus.REJECTED)

        kyc_decision_counter.labels(outcome="rejected").inc()
        logger.info("KYC rejected", extra={"account_id": account.id, "reason": reason})
        return rejected

    @returns_result
    def review_document(self, document_id: str, validation, reason: Optional[str] = None) -> KYCDocument:
        outcome = parse_choice(DocumentValidation, validation, "validation")
        if outcome == DocumentValidation.PENDING:
            raise ValidationError("A review must move the document out of pending")
        if outcome == DocumentValidation.REJECTED:
            reason = clean_rejection_reason(reason)

        if self.repo.get_kyc_document(document_id) is None:
            raise NotFoundError(f"KYC document {document_id} not found", context={"document_id": document_id})

        with self.repo.transaction():
            return self.repo.update_kyc_document(document_id, outcome, reason, utcnow())

    @returns_result
    def set_transfer_limit(self, account_id: str, limit_cents: int) -> Account:
        require_positive(limit_cents, "limit_cents")
        with self.repo.transaction():
            updated = self.repo.update_account_profile(account_id, transfer_limit_cents=limit_cents)
        logger.info(
            f"Transfer limit set to {limit_cents} cents",
            extra={"account_id": account_id, "transfer_limit_cents": limit_cents},
        )
        return updated

    @returns_result
    def list_documents(self, account_id: str) -> List[KYCDocument]:
        require_account(self.repo, account_id)
        return self.repo.list_kyc_documents(account_id)
