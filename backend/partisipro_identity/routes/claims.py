"""
Claim Routes — issuance, revocation, update, renewal and verification of claims.
Issuer webhooks call POST /api/claims; signature checks happen upstream.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from partisipro_identity.database import get_db
from partisipro_identity.models.enums import ClaimStatus
from partisipro_identity.routes.deps import get_operator_id, get_request_info
from partisipro_identity.schemas.schemas import (
    BatchResult, BatchUpdateRequest, ClaimIssueRequest, ClaimRenewRequest,
    ClaimResponse, ClaimRevokeRequest, ClaimUpdateRequest, ClaimVerificationResult,
)
from partisipro_identity.services.claim_ledger import ClaimLedger
from partisipro_identity.services.verification_engine import VerificationEngine

router = APIRouter(prefix="/api/claims", tags=["Claims"])


@router.post("", response_model=ClaimResponse, status_code=201)
def issue_claim(
    payload: ClaimIssueRequest,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Issue a claim on behalf of a trusted issuer."""
    return ClaimLedger.issue_claim(
        db, payload.identity_id, payload.claim_topic, payload.issuer,
        data=payload.data,
        expires_at=payload.expires_at,
        verification_hash=payload.verification_hash,
        operator_id=operator_id,
        request_info=request_info,
    )


@router.get("", response_model=List[ClaimResponse])
def list_claims(
    identity_id: Optional[str] = None,
    topic: Optional[str] = None,
    issuer: Optional[str] = None,
    status: Optional[ClaimStatus] = None,
    db: Session = Depends(get_db),
):
    """List claims; status=expired includes claims past expiry not yet marked."""
    return ClaimLedger.list_claims(
        db, identity_id=identity_id, topic=topic, issuer=issuer,
        status=status.value if status else None,
    )


@router.post("/batch", response_model=BatchResult)
def batch_update(
    payload: BatchUpdateRequest,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Apply many updates/revocations; failures are reported per item."""
    return ClaimLedger.batch_update(
        db, payload.updates, operator_id=operator_id, request_info=request_info,
    )


@router.post("/sweep-expired")
def sweep_expired(db: Session = Depends(get_db)) -> Dict[str, int]:
    """Write back every overdue expiry. Meant for an external scheduler."""
    return {"expired": ClaimLedger.sweep_expired(db)}


@router.get("/{claim_id}", response_model=ClaimResponse)
def get_claim(claim_id: str, db: Session = Depends(get_db)):
    return ClaimLedger.get_claim(db, claim_id)


@router.get("/{claim_id}/verify", response_model=ClaimVerificationResult)
def verify_claim(claim_id: str, db: Session = Depends(get_db)):
    return VerificationEngine.verify_claim(db, claim_id)


@router.post("/{claim_id}/revoke", response_model=ClaimResponse)
def revoke_claim(
    claim_id: str,
    payload: ClaimRevokeRequest,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    return ClaimLedger.revoke_claim(
        db, claim_id, payload.reason, operator_id=operator_id, request_info=request_info,
    )


@router.patch("/{claim_id}", response_model=ClaimResponse)
def update_claim(
    claim_id: str,
    payload: ClaimUpdateRequest,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Merge new payload keys and/or move the expiry of an active claim."""
    return ClaimLedger.update_claim(
        db, claim_id, data=payload.data, expires_at=payload.expires_at,
        operator_id=operator_id, request_info=request_info,
    )


@router.post("/{claim_id}/renew", response_model=ClaimResponse, status_code=201)
def renew_claim(
    claim_id: str,
    payload: Optional[ClaimRenewRequest] = None,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Issue a successor to an active or expired claim of a renewable topic."""
    payload = payload or ClaimRenewRequest()
    return ClaimLedger.renew_claim(
        db, claim_id, expires_at=payload.expires_at,
        operator_id=operator_id, request_info=request_info,
    )
