"""
Trusted Issuer Model — external attestation authorities (KYC providers).
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON

from partisipro_identity.database import Base


class TrustedIssuer(Base):
    __tablename__ = "trusted_issuers"

    id = Column(String(128), primary_key=True, index=True)  # Issuer address or identifier
    name = Column(String(128), nullable=False)               # e.g. Verihubs, Sumsub

    authorized_claims = Column(JSON, default=list)           # Topic ids this issuer may issue
    status = Column(String(16), default="active")            # active | suspended | revoked

    # companyName, website, contactEmail, apiEndpoint, webhookUrl,
    # supportedRegions, verificationMethods
    issuer_metadata = Column(JSON, default=dict)

    issued_claims_count = Column(Integer, default=0)
    active_claims_count = Column(Integer, default=0)

    registered_at = Column(DateTime, default=datetime.utcnow)
    last_activity = Column(DateTime, default=datetime.utcnow)
