from partisipro_identity.services.audit_service import AuditService
from partisipro_identity.services.topic_registry import ClaimTopicRegistry
from partisipro_identity.services.issuer_directory import TrustedIssuerDirectory
from partisipro_identity.services.verification_engine import VerificationEngine
from partisipro_identity.services.identity_registry import IdentityRegistry
from partisipro_identity.services.claim_ledger import ClaimLedger
from partisipro_identity.services.compliance_reporter import ComplianceReporter, ScoreWeights

__all__ = [
    "AuditService", "ClaimTopicRegistry", "TrustedIssuerDirectory", "VerificationEngine",
    "IdentityRegistry", "ClaimLedger", "ComplianceReporter", "ScoreWeights",
]
