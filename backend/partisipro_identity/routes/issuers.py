"""
Trusted Issuer Routes — registration, authorization and status of claim issuers.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from partisipro_identity.database import get_db
from partisipro_identity.models.enums import IssuerStatus
from partisipro_identity.routes.deps import get_operator_id, get_request_info
from partisipro_identity.schemas.schemas import (
    IssuerRegisterRequest, IssuerResponse, IssuerStatusRequest, IssuerUpdateRequest,
)
from partisipro_identity.services.issuer_directory import TrustedIssuerDirectory

router = APIRouter(prefix="/api/issuers", tags=["Trusted Issuers"])


@router.get("", response_model=List[IssuerResponse])
def list_issuers(
    status: Optional[IssuerStatus] = None,
    topic: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """List issuers, optionally by status or by a topic they may issue."""
    return TrustedIssuerDirectory.list_issuers(db, status.value if status else None, topic)


@router.get("/{issuer_id}", response_model=IssuerResponse)
def get_issuer(issuer_id: str, db: Session = Depends(get_db)):
    return TrustedIssuerDirectory.get_issuer(db, issuer_id)


@router.post("", response_model=IssuerResponse, status_code=201)
def register_issuer(
    payload: IssuerRegisterRequest,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Register a new trusted issuer (status=active)."""
    return TrustedIssuerDirectory.register_issuer(
        db, payload.issuer_id, payload.name,
        authorized_claims=payload.authorized_claims,
        metadata=payload.metadata.model_dump(exclude_none=True),
        operator_id=operator_id, request_info=request_info,
    )


@router.patch("/{issuer_id}", response_model=IssuerResponse)
def update_issuer(
    issuer_id: str,
    payload: IssuerUpdateRequest,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    return TrustedIssuerDirectory.update_issuer(
        db, issuer_id, name=payload.name, metadata=payload.metadata,
        operator_id=operator_id, request_info=request_info,
    )


@router.post("/{issuer_id}/status", response_model=IssuerResponse)
def set_issuer_status(
    issuer_id: str,
    payload: IssuerStatusRequest,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Suspend, reactivate or permanently revoke an issuer."""
    return TrustedIssuerDirectory.set_status(
        db, issuer_id, payload.status, reason=payload.reason,
        operator_id=operator_id, request_info=request_info,
    )


@router.put("/{issuer_id}/topics/{topic}", response_model=IssuerResponse)
def authorize_topic(
    issuer_id: str,
    topic: str,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Allow the issuer to issue claims of `topic`."""
    return TrustedIssuerDirectory.authorize(
        db, issuer_id, topic, operator_id=operator_id, request_info=request_info,
    )


@router.delete("/{issuer_id}/topics/{topic}", response_model=IssuerResponse)
def deauthorize_topic(
    issuer_id: str,
    topic: str,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Stop the issuer from issuing new claims of `topic`."""
    return TrustedIssuerDirectory.revoke_authorization(
        db, issuer_id, topic, operator_id=operator_id, request_info=request_info,
    )
