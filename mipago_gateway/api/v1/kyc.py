"""KYC endpoints: documents, review, approval and transfer tier"""

from typing import List

from fastapi import APIRouter, Depends, Request

from mipago_gateway.api.dependencies import get_kyc_service, get_request_id
from mipago_gateway.api.v1.errors import unwrap_or_raise
from mipago_gateway.api.v1.schemas import (
    AccountResponse,
    KYCDocumentResponse,
    RejectRequest,
    ReviewDocumentRequest,
    TransferLimitRequest,
    UploadDocumentRequest,
)
from mipago_gateway.services.kyc import KYCService

router = APIRouter()


@router.post("/accounts/{account_id}/kyc/documents", response_model=KYCDocumentResponse, status_code=201)
def upload_document(
    account_id: str,
    body: UploadDocumentRequest,
    request: Request,
    service: KYCService = Depends(get_kyc_service),
):
    document = unwrap_or_raise(
        service.upload_document(account_id, body.kind, body.document_url),
        get_request_id(request),
    )
    return KYCDocumentResponse.model_validate(document)


@router.get("/accounts/{account_id}/kyc/documents", response_model=List[KYCDocumentResponse])
def list_documents(account_id: str, request: Request, service: KYCService = Depends(get_kyc_service)):
    documents = unwrap_or_raise(service.list_documents(account_id), get_request_id(request))
    return [KYCDocumentResponse.model_validate(d) for d in documents]


@router.post("/accounts/{account_id}/kyc/approve", response_model=AccountResponse)
def approve(account_id: str, request: Request, service: KYCService = Depends(get_kyc_service)):
    return AccountResponse.model_validate(unwrap_or_raise(service.approve(account_id), get_request_id(request)))


@router.post("/accounts/{account_id}/kyc/reject", response_model=AccountResponse)
def reject(
    account_id: str,
    body: RejectRequest,
    request: Request,
    service: KYCService = Depends(get_kyc_service),
):
    account = unwrap_or_raise(service.reject(account_id, body.reason), get_request_id(request))
    return AccountResponse.model_validate(account)


@router.post("/kyc/documents/{document_id}/review", response_model=KYCDocumentResponse)
def review_document(
    document_id: str,
    body: ReviewDocumentRequest,
    request: Request,
    service: KYCService = Depends(get_kyc_service),
):
    document = unwrap_or_raise(
        service.review_document(document_id, body.validation, reason=body.reason),
        get_request_id(request),
    )
    return KYCDocumentResponse.model_validate(document)


@router.put("/accounts/{account_id}/transfer-limit", response_model=AccountResponse)
def set_transfer_limit(
    account_id: str,
    body: TransferLimitRequest,
    request: Request,
    service: KYCService = Depends(get_kyc_service),
):
    account = unwrap_or_raise(service.set_transfer_limit(account_id, body.limit_cents), get_request_id(request))
    return AccountResponse.model_validate(account)
