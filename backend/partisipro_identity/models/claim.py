"""
Claim Model — a single attestation about an identity.
Append-only: claims are never deleted, status marks logical removal.
"""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON, ForeignKey

from partisipro_identity.database import Base


class Claim(Base):
    __tablename__ = "claims"

    id = Column(String(48), primary_key=True, index=True)
    identity_id = Column(String(42), ForeignKey("identities.id"), nullable=False, index=True)
    claim_topic = Column(String(64), ForeignKey("claim_topics.id"), nullable=False, index=True)
    issuer = Column(String(128), ForeignKey("trusted_issuers.id"), nullable=False, index=True)

    data = Column(JSON, default=dict)                 # Topic-specific payload

    issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)      # NULL = never expires

    status = Column(String(16), default="active", index=True)  # active | revoked | expired
    verification_hash = Column(String(66))            # On-chain linkage (opaque)
    revocation_reason = Column(String(512), nullable=True)

    updated_at = Column(DateTime, default=datetime.utcnow)

    def is_expired_at(self, moment: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= moment

    def to_reference(self) -> dict:
        """Lightweight pointer stored in the owning identity's claim list."""
        return {
            "claim_id": self.id,
            "claim_topic": self.claim_topic,
            "issued_at": self.issued_at.isoformat() if self.issued_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "status": self.status,
        }
