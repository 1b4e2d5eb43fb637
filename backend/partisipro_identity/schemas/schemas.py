"""
Pydantic Schemas — Request & Response models for API validation, and the
structured results returned by the verification and reporting services.
"""
from datetime import datetime
from typing import Optional, Dict, List, Any
from pydantic import BaseModel, Field

from partisipro_identity.models.enums import (
    ClaimCategory, ClaimStatus, IdentityStatus, IssuerStatus,
)


# ──────────────── Claim Topics ────────────────

class TopicDefineRequest(BaseModel):
    id: str = Field(..., description="Stable topic id in upper snake case, e.g. KYC_APPROVED")
    name: str = Field(..., min_length=1)
    description: str = ""
    required: bool = False
    category: ClaimCategory
    default_expiry_days: Optional[int] = Field(None, ge=1, description="Omit for non-expiring claims")
    renewable: bool = False


class TopicUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    required: Optional[bool] = None
    category: Optional[ClaimCategory] = None
    default_expiry_days: Optional[int] = Field(None, ge=1)
    renewable: Optional[bool] = None


class TopicResponse(BaseModel):
    id: str
    name: str
    description: str = ""
    required: bool
    category: str
    default_expiry_days: Optional[int] = None
    renewable: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ──────────────── Trusted Issuers ────────────────

class IssuerMetadata(BaseModel):
    company_name: Optional[str] = None
    website: Optional[str] = None
    contact_email: Optional[str] = None
    api_endpoint: Optional[str] = None
    webhook_url: Optional[str] = None
    supported_regions: List[str] = []
    verification_methods: List[str] = []

    class Config:
        extra = "allow"


class IssuerRegisterRequest(BaseModel):
    issuer_id: str = Field(..., min_length=1, description="Issuer address or identifier")
    name: str = Field(..., min_length=1, description="Provider name, e.g. Verihubs")
    authorized_claims: List[str] = []
    metadata: IssuerMetadata = IssuerMetadata()


class IssuerUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    metadata: Optional[Dict[str, Any]] = None


class IssuerStatusRequest(BaseModel):
    status: IssuerStatus
    reason: Optional[str] = None


class IssuerResponse(BaseModel):
    id: str
    name: str
    authorized_claims: List[str]
    status: str
    issuer_metadata: Dict[str, Any] = {}
    issued_claims_count: int
    active_claims_count: int
    registered_at: datetime
    last_activity: datetime

    class Config:
        from_attributes = True


# ──────────────── Identities ────────────────

class ClaimReference(BaseModel):
    claim_id: str
    claim_topic: str
    issued_at: datetime
    expires_at: Optional[datetime] = None
    status: ClaimStatus


class IdentityRegisterRequest(BaseModel):
    user_address: str = Field(..., description="Wallet address, used as the identity id")
    user_id: str = Field(..., description="Platform user account id")
    identity_key: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class BatchRegisterRequest(BaseModel):
    identities: List[IdentityRegisterRequest]


class IdentityStatusRequest(BaseModel):
    status: IdentityStatus
    reason: Optional[str] = None


class TrustedIssuersRequest(BaseModel):
    issuer_ids: List[str]


class IdentityResponse(BaseModel):
    id: str
    user_id: str
    identity_key: Optional[str] = None
    status: IdentityStatus
    claims: List[ClaimReference] = []
    trusted_issuers: List[str] = []
    identity_metadata: Dict[str, Any] = {}
    created_at: datetime
    verified_at: Optional[datetime] = None
    last_updated: datetime

    class Config:
        from_attributes = True


class IdentityListResponse(BaseModel):
    total: int
    identities: List[IdentityResponse]


class VerifyIdentityRequest(BaseModel):
    required_claims: Optional[List[str]] = None
    report_expiry: bool = False


# ──────────────── Claims ────────────────

class ClaimIssueRequest(BaseModel):
    identity_id: str
    claim_topic: str
    issuer: str
    data: Dict[str, Any] = {}
    expires_at: Optional[datetime] = None
    verification_hash: Optional[str] = None


class ClaimRevokeRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class ClaimUpdateRequest(BaseModel):
    data: Optional[Dict[str, Any]] = None
    expires_at: Optional[datetime] = None


class ClaimRenewRequest(BaseModel):
    expires_at: Optional[datetime] = None


class ClaimBatchItem(BaseModel):
    claim_id: str
    status: Optional[ClaimStatus] = None   # Only "revoked" is accepted
    data: Optional[Dict[str, Any]] = None
    expires_at: Optional[datetime] = None
    revocation_reason: Optional[str] = None


class BatchUpdateRequest(BaseModel):
    updates: List[ClaimBatchItem]


class ClaimResponse(BaseModel):
    id: str
    identity_id: str
    claim_topic: str
    issuer: str
    data: Dict[str, Any] = {}
    issued_at: datetime
    expires_at: Optional[datetime] = None
    status: ClaimStatus
    verification_hash: Optional[str] = None
    revocation_reason: Optional[str] = None
    updated_at: datetime

    class Config:
        from_attributes = True


# ──────────────── Verification Results ────────────────

class IdentityVerificationResult(BaseModel):
    is_verified: bool
    identity: Optional[IdentityResponse] = None
    missing_claims: List[str] = []
    expired_claims: List[ClaimReference] = []
    expires_in: Dict[str, int] = {}          # topic -> days left, when requested
    reason: Optional[str] = None


class ClaimVerificationResult(BaseModel):
    is_valid: bool
    claim: Optional[ClaimResponse] = None
    reason: Optional[str] = None
    expires_in: Optional[int] = None          # Days until expiration


# ──────────────── Batch Results ────────────────

class BatchItemResult(BaseModel):
    key: str                                  # claim id or user address
    success: bool
    error: Optional[str] = None
    error_code: Optional[str] = None


class BatchResult(BaseModel):
    total: int
    succeeded: int
    failed: int
    results: List[BatchItemResult]


# ──────────────── Compliance ────────────────

class ComplianceReport(BaseModel):
    generated_at: datetime
    as_of: datetime
    total_identities: int
    verified_identities: int
    pending_identities: int
    revoked_identities: int
    total_claims: int
    active_claims: int
    expired_claims: int
    revoked_claims: int
    stale_verifications: int                  # verified identities failing the baseline
    untrusted_issuer_claims: int              # active claims from non-active issuers
    compliance_score: float                   # 0-100
    recommendations: List[str] = []
    next_check_due: datetime


class ComplianceCheckResult(BaseModel):
    identity_id: str
    is_compliant: bool
    checked_at: datetime
    violations: List[str] = []
    required_actions: List[str] = []
    next_check_due: Optional[datetime] = None


# ──────────────── Audit ────────────────

class AuditLogEntry(BaseModel):
    id: int
    identity_id: str
    operation: str
    operator_id: str
    changes: Optional[Dict] = None
    payload_hash: Optional[str] = None
    timestamp: datetime
    log_metadata: Optional[Dict] = None

    class Config:
        from_attributes = True


class AuditChainResult(BaseModel):
    valid: bool
    total_entries: int
    broken_at: Optional[int] = None
    message: Optional[str] = None


# ──────────────── Generic ────────────────

class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    database: str
    uptime_seconds: float


class ErrorResponse(BaseModel):
    detail: str
    error_code: Optional[str] = None
