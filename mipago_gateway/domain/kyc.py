"""KYC approval rules"""

from typing import Iterable, List, Optional

from mipago_gateway.domain.exceptions import ValidationError
from mipago_gateway.domain.models import Denial, DocumentKind, KYCDocument

# Presence of these kinds gates approval; their per-document validation is not consulted
REQUIRED_FOR_APPROVAL = (DocumentKind.ID, DocumentKind.SELFIE)


def missing_required_documents(documents: Iterable[KYCDocument]) -> List[DocumentKind]:
    present = {d.kind for d in documents}
    return [kind for kind in REQUIRED_FOR_APPROVAL if kind not in present]


def approval_denial(documents: Iterable[KYCDocument]) -> Optional[Denial]:
    missing = missing_required_documents(documents)
    if not missing:
        return None
    names = ", ".join(kind.value for kind in missing)
    return Denial(
        code="MISSING_DOCUMENTS",
        message=f"KYC approval requires documents: {names}",
        remediation=f"Upload the missing documents: {names}",
        context={"missing": [kind.value for kind in missing]},
    )


def clean_rejection_reason(reason: Optional[str]) -> str:
    cleaned = (reason or "").strip()
    if not cleaned:
        raise ValidationError("A rejection reason is required")
    return cleaned
