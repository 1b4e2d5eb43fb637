"""
Audit Service — Manages the immutable, hash-chained identity audit trail.
"""
import json
from datetime import datetime
from typing import Optional, Dict

from sqlalchemy.orm import Session

from partisipro_identity.config import get_settings
from partisipro_identity.models.audit import IdentityAuditLog
from partisipro_identity.models.enums import AuditOperation
from partisipro_identity.utils.hashing import generate_chain_hash

settings = get_settings()

ISSUER_SUBJECT_PREFIX = "issuer:"
TOPIC_SUBJECT_PREFIX = "topic:"


def issuer_subject(issuer_id: str) -> str:
    """Audit chain key for a trusted issuer; kept apart from identity addresses."""
    return f"{ISSUER_SUBJECT_PREFIX}{issuer_id}"


def topic_subject(topic_id: str) -> str:
    return f"{TOPIC_SUBJECT_PREFIX}{topic_id}"


class AuditService:
    """Creates tamper-evident audit log entries with hash chaining."""

    @staticmethod
    def log(
        db: Session,
        identity_id: str,
        operation: AuditOperation,
        operator_id: Optional[str] = None,
        changes: Optional[Dict] = None,
        request_info: Optional[Dict] = None,
        metadata: Optional[Dict] = None,
    ) -> IdentityAuditLog:
        """Add an audit log entry to the caller's transaction.

        The entry is flushed, not committed: it lands together with the
        mutation it describes, or not at all.

        Args:
            db: Database session.
            identity_id: Chain subject: an identity address, or issuer_subject() / topic_subject().
            operation: What happened.
            operator_id: Who did it; defaults to the system operator.
            changes: Changed fields, hashed into the chain.
            request_info: Optional {"ip", "user_agent"} of the originating request.
            metadata: Additional metadata to store.

        Returns:
            The created IdentityAuditLog entry.
        """
        # Get the hash of the last entry for this subject (chain linking)
        last_entry = (
            db.query(IdentityAuditLog)
            .filter(IdentityAuditLog.identity_id == identity_id)
            .order_by(IdentityAuditLog.id.desc())
            .first()
        )
        previous_hash = last_entry.payload_hash if last_entry else ""

        operation = AuditOperation(operation)
        # Stored JSON must round-trip to the same hash input (dates become strings)
        changes = json.loads(json.dumps(changes or {}, default=str))
        chain_hash = generate_chain_hash(
            {"operation": operation.value, "identity_id": identity_id, "changes": changes},
            previous_hash,
        )

        req = request_info or {}
        entry = IdentityAuditLog(
            identity_id=identity_id,
            operation=operation.value,
            operator_id=operator_id or settings.SYSTEM_OPERATOR_ID,
            changes=changes,
            payload_hash=chain_hash,
            previous_hash=previous_hash,
            ip_address=req.get("ip"),
            user_agent=req.get("user_agent"),
            log_metadata=metadata or {},
            timestamp=datetime.utcnow(),
        )

        db.add(entry)
        db.flush()

        return entry

    @staticmethod
    def get_trail(db: Session, identity_id: str) -> list[IdentityAuditLog]:
        """Get the full audit trail for a subject, ordered chronologically."""
        return (
            db.query(IdentityAuditLog)
            .filter(IdentityAuditLog.identity_id == identity_id)
            .order_by(IdentityAuditLog.id.asc())
            .all()
        )

    @staticmethod
    def verify_chain(db: Session, identity_id: str) -> dict:
        """Verify the integrity of the audit chain for a subject.

        Each entry's hash is recomputed from its stored content, and each
        previous_hash must match the entry before it.

        Returns:
            dict with 'valid' (bool), 'total_entries', and 'broken_at' (if invalid).
        """
        entries = AuditService.get_trail(db, identity_id)

        if not entries:
            return {"valid": True, "total_entries": 0, "broken_at": None}

        for i, entry in enumerate(entries):
            expected_prev = entries[i - 1].payload_hash if i > 0 else ""
            expected_hash = generate_chain_hash(
                {"operation": entry.operation, "identity_id": entry.identity_id,
                 "changes": entry.changes or {}},
                expected_prev,
            )
            if entry.previous_hash != expected_prev or entry.payload_hash != expected_hash:
                return {
                    "valid": False,
                    "total_entries": len(entries),
                    "broken_at": entry.id,
                    "message": f"Chain broken at entry {entry.id} ({entry.operation})",
                }

        return {"valid": True, "total_entries": len(entries), "broken_at": None}
