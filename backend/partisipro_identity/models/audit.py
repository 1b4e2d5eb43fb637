"""
Identity Audit Log Model — Immutable, tamper-evident audit trail.
Every identity/claim operation is SHA-256 hashed and timestamped.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, DateTime, JSON

from partisipro_identity.database import Base


class IdentityAuditLog(Base):
    __tablename__ = "identity_audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)

    # Chain subject: identity address, or "issuer:<id>" / "topic:<id>" for directory operations
    identity_id = Column(String(160), nullable=False, index=True)

    operation = Column(String(32), nullable=False)
    # Operations: register, verify, revoke, status_update, claim_issue, claim_revoke,
    #             claim_update, claim_renew, claim_expire, issuer_register,
    #             issuer_update, topic_define, topic_update, allowlist_update

    operator_id = Column(String(128), nullable=False)
    changes = Column(JSON, default=dict)

    payload_hash = Column(String(64))       # Chain hash of this entry
    previous_hash = Column(String(64))      # Hash chain for tamper detection

    ip_address = Column(String(45))
    user_agent = Column(String(256))

    log_metadata = Column(JSON, default=dict)
    timestamp = Column(DateTime, default=datetime.utcnow)
