"""
Identity Routes — registration, status administration, verification and audit trail.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from partisipro_identity.database import get_db
from partisipro_identity.models.enums import IdentityStatus
from partisipro_identity.routes.deps import get_operator_id, get_request_info
from partisipro_identity.schemas.schemas import (
    AuditChainResult, AuditLogEntry, BatchRegisterRequest, BatchResult,
    IdentityListResponse, IdentityRegisterRequest, IdentityResponse,
    IdentityStatusRequest, IdentityVerificationResult, TrustedIssuersRequest,
    VerifyIdentityRequest,
)
from partisipro_identity.services.audit_service import AuditService
from partisipro_identity.services.identity_registry import IdentityRegistry
from partisipro_identity.services.verification_engine import VerificationEngine

router = APIRouter(prefix="/api/identities", tags=["Identities"])


@router.post("", response_model=IdentityResponse, status_code=201)
def register_identity(
    payload: IdentityRegisterRequest,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Create a pending identity for a wallet address."""
    return IdentityRegistry.register_identity(
        db, payload.user_address, payload.user_id,
        identity_key=payload.identity_key,
        metadata=payload.metadata,
        operator_id=operator_id,
        request_info=request_info,
    )


@router.post("/batch", response_model=BatchResult)
def batch_register(
    payload: BatchRegisterRequest,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Register many identities; failures are reported per item."""
    return IdentityRegistry.batch_register(
        db, payload.identities, operator_id=operator_id, request_info=request_info,
    )


@router.get("", response_model=IdentityListResponse)
def list_identities(
    status: Optional[IdentityStatus] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    total, identities = IdentityRegistry.list_identities(
        db, status.value if status else None, limit=limit, offset=offset,
    )
    return IdentityListResponse(total=total, identities=identities)


@router.get("/{user_address}", response_model=IdentityResponse)
def get_identity(user_address: str, db: Session = Depends(get_db)):
    return IdentityRegistry.get_identity(db, user_address)


@router.post("/{user_address}/status", response_model=IdentityResponse)
def update_identity_status(
    user_address: str,
    payload: IdentityStatusRequest,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Administrative status override; recorded with its reason."""
    return IdentityRegistry.update_status(
        db, user_address, payload.status, reason=payload.reason,
        operator_id=operator_id, request_info=request_info,
    )


@router.put("/{user_address}/trusted-issuers", response_model=IdentityResponse)
def set_trusted_issuers(
    user_address: str,
    payload: TrustedIssuersRequest,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Restrict which issuers may issue claims to this identity. An empty list lifts the restriction."""
    return IdentityRegistry.set_trusted_issuers(
        db, user_address, payload.issuer_ids,
        operator_id=operator_id, request_info=request_info,
    )


@router.post("/{user_address}/verify", response_model=IdentityVerificationResult)
def verify_identity(
    user_address: str,
    payload: Optional[VerifyIdentityRequest] = None,
    db: Session = Depends(get_db),
):
    """Check the identity against required topics (default: the catalog's required set)."""
    payload = payload or VerifyIdentityRequest()
    return VerificationEngine.verify_identity(
        db, user_address,
        required_claims=payload.required_claims,
        report_expiry=payload.report_expiry,
    )


@router.post("/{user_address}/rebuild-claims", response_model=IdentityResponse)
def rebuild_claim_references(user_address: str, db: Session = Depends(get_db)):
    """Re-derive the identity's claim references from the claim ledger."""
    return IdentityRegistry.rebuild_claim_references(db, user_address)


@router.get("/{user_address}/audit", response_model=List[AuditLogEntry])
def get_audit_trail(user_address: str, db: Session = Depends(get_db)):
    """Full audit trail for an identity, oldest first."""
    IdentityRegistry.get_identity(db, user_address)
    return AuditService.get_trail(db, user_address)


@router.get("/{user_address}/audit/verify", response_model=AuditChainResult)
def verify_audit_chain(user_address: str, db: Session = Depends(get_db)):
    """Recompute the audit hash chain and report the first broken entry, if any."""
    IdentityRegistry.get_identity(db, user_address)
    return AuditService.verify_chain(db, user_address)
