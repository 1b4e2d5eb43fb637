"""
Status and catalog enumerations shared by models, services and schemas.
Values are stored as plain strings in the database.
"""
from enum import Enum


class IdentityStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REVOKED = "revoked"


class ClaimStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class IssuerStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    REVOKED = "revoked"


class ClaimCategory(str, Enum):
    KYC = "kyc"
    ACCREDITATION = "accreditation"
    GOVERNANCE = "governance"
    COMPLIANCE = "compliance"


class ClaimTopic(str, Enum):
    """Built-in topic ids. Administrators may define further topics."""
    KYC_APPROVED = "KYC_APPROVED"
    ACCREDITED_INVESTOR = "ACCREDITED_INVESTOR"
    AUTHORIZED_SPV = "AUTHORIZED_SPV"
    GOVERNANCE_ELIGIBLE = "GOVERNANCE_ELIGIBLE"
    INSTITUTIONAL_INVESTOR = "INSTITUTIONAL_INVESTOR"


class AuditOperation(str, Enum):
    REGISTER = "register"
    VERIFY = "verify"
    REVOKE = "revoke"
    STATUS_UPDATE = "status_update"
    CLAIM_ISSUE = "claim_issue"
    CLAIM_REVOKE = "claim_revoke"
    CLAIM_UPDATE = "claim_update"
    CLAIM_RENEW = "claim_renew"
    CLAIM_EXPIRE = "claim_expire"
    ISSUER_REGISTER = "issuer_register"
    ISSUER_UPDATE = "issuer_update"
    TOPIC_DEFINE = "topic_define"
    TOPIC_UPDATE = "topic_update"
    ALLOWLIST_UPDATE = "allowlist_update"
