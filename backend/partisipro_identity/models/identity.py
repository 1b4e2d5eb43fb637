"""
Identity Registry Model — one record per platform user, keyed by wallet address.
"""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON

from partisipro_identity.database import Base


class IdentityRecord(Base):
    __tablename__ = "identities"

    id = Column(String(42), primary_key=True, index=True)      # Wallet address
    user_id = Column(String(128), unique=True, nullable=False, index=True)
    identity_key = Column(String(128))                          # On-chain identity reference

    status = Column(String(16), default="pending")
    # Statuses: pending → verified (→ pending on lost compliance) ; any → revoked (terminal)

    # Projection of the identity's claims: [{claim_id, claim_topic, issued_at, expires_at, status}]
    # The claims table stays authoritative.
    claims = Column(JSON, default=list)
    trusted_issuers = Column(JSON, default=list)               # Empty = no per-identity restriction

    identity_metadata = Column(JSON, default=dict)

    created_at = Column(DateTime, default=datetime.utcnow)
    verified_at = Column(DateTime, nullable=True)              # First verification only
    last_updated = Column(DateTime, default=datetime.utcnow)
