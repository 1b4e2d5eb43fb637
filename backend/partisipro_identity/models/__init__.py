from partisipro_identity.models.topic import ClaimTopicDefinition
from partisipro_identity.models.issuer import TrustedIssuer
from partisipro_identity.models.identity import IdentityRecord
from partisipro_identity.models.claim import Claim
from partisipro_identity.models.audit import IdentityAuditLog

__all__ = ["ClaimTopicDefinition", "TrustedIssuer", "IdentityRecord", "Claim", "IdentityAuditLog"]
