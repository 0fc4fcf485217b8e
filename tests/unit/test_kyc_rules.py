"""Unit tests for KYC approval rules"""

import pytest
from datetime import datetime
from mipago_gateway.domain.exceptions import ValidationError
from mipago_gateway.domain.kyc import approval_denial, clean_rejection_reason, missing_required_documents
from mipago_gateway.domain.models import DocumentKind, DocumentValidation, KYCDocument

NOW = datetime(2024, 6, 1, 12, 0, 0)


def doc(kind: DocumentKind, validation: DocumentValidation = DocumentValidation.PENDING) -> KYCDocument:
    return KYCDocument(
        id=f"doc-{kind.value}",
        account_id="acc-1",
        kind=kind,
        document_url=f"https://files.example/{kind.value}.jpg",
        uploaded_at=NOW,
        validation=validation,
    )


def test_id_and_selfie_are_enough():
    """Test presence of both required kinds allows approval"""
    assert approval_denial([doc(DocumentKind.ID), doc(DocumentKind.SELFIE)]) is None


def test_document_validation_state_not_consulted():
    """Test a rejected document still counts as present"""
    documents = [doc(DocumentKind.ID, DocumentValidation.REJECTED), doc(DocumentKind.SELFIE)]

    assert approval_denial(documents) is None


def test_missing_selfie():
    """Test the denial lists what is missing"""
    denial = approval_denial([doc(DocumentKind.ID), doc(DocumentKind.PROOF_OF_ADDRESS)])

    assert denial.code == "MISSING_DOCUMENTS"
    assert denial.context["missing"] == ["selfie"]


def test_nothing_uploaded():
    assert missing_required_documents([]) == [DocumentKind.ID, DocumentKind.SELFIE]


def test_rejection_reason_required():
    """Test blank reasons are rejected and others trimmed"""
    with pytest.raises(ValidationError):
        clean_rejection_reason("   ")
    with pytest.raises(ValidationError):
        clean_rejection_reason(None)

    assert clean_rejection_reason("  blurry photo ") == "blurry photo"
