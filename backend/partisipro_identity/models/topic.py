"""
Claim Topic Model — platform-wide catalog of attestation types and their policy.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, Boolean

from partisipro_identity.database import Base


class ClaimTopicDefinition(Base):
    __tablename__ = "claim_topics"

    id = Column(String(64), primary_key=True, index=True)   # e.g. KYC_APPROVED, never reused
    name = Column(String(128), nullable=False)
    description = Column(String(512), default="")

    required = Column(Boolean, default=False)               # Needed for baseline participation
    category = Column(String(24), nullable=False)           # kyc | accreditation | governance | compliance
    default_expiry_days = Column(Integer, nullable=True)    # NULL = claims never expire
    renewable = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
