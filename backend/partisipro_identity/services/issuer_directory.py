"""
Trusted Issuer Directory — which external parties may issue which claim topics.

Status rules:
    active <-> suspended   (reversible; suspended issuers cannot issue)
    any    ->  revoked     (terminal; no new claims, existing claims untouched)
"""
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from partisipro_identity.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from partisipro_identity.logger import get_logger
from partisipro_identity.models.enums import AuditOperation, IssuerStatus
from partisipro_identity.models.issuer import TrustedIssuer
from partisipro_identity.models.topic import ClaimTopicDefinition
from partisipro_identity.services.audit_service import AuditService, issuer_subject
from partisipro_identity.utils.validators import is_blank

logger = get_logger(__name__)


class TrustedIssuerDirectory:
    """Issuer registration, authorization and issuance statistics."""

    @staticmethod
    def register_issuer(
        db: Session,
        issuer_id: str,
        name: str,
        authorized_claims: Optional[List[str]] = None,
        metadata: Optional[Dict] = None,
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> TrustedIssuer:
        """Register a new issuer with status=active and zeroed counters.

        Raises:
            ValidationError: blank id/name or an unknown claim topic.
            ConflictError: the issuer id is already registered.
        """
        if is_blank(issuer_id):
            raise ValidationError("Issuer id is required")
        if is_blank(name):
            raise ValidationError("Issuer name is required")
        issuer_id = issuer_id.strip()

        if db.get(TrustedIssuer, issuer_id) is not None:
            raise ConflictError(f"Trusted issuer already exists: {issuer_id}")

        topics = _dedupe(authorized_claims or [])
        _require_known_topics(db, topics)

        now = datetime.utcnow()
        issuer = TrustedIssuer(
            id=issuer_id,
            name=name.strip(),
            authorized_claims=topics,
            status=IssuerStatus.ACTIVE.value,
            issuer_metadata=dict(metadata or {}),
            issued_claims_count=0,
            active_claims_count=0,
            registered_at=now,
            last_activity=now,
        )
        db.add(issuer)
        AuditService.log(
            db, issuer_subject(issuer_id), AuditOperation.ISSUER_REGISTER,
            operator_id=operator_id,
            changes={"name": issuer.name, "authorized_claims": topics},
            request_info=request_info,
        )
        db.commit()
        db.refresh(issuer)

        logger.info(f"Trusted issuer {issuer_id} registered for {topics}")
        return issuer

    @staticmethod
    def get_issuer(db: Session, issuer_id: str) -> TrustedIssuer:
        issuer = db.get(TrustedIssuer, issuer_id)
        if issuer is None:
            raise NotFoundError(f"Trusted issuer not found: {issuer_id}")
        return issuer

    @staticmethod
    def list_issuers(
        db: Session,
        status: Optional[str] = None,
        topic: Optional[str] = None,
    ) -> List[TrustedIssuer]:
        query = db.query(TrustedIssuer).order_by(TrustedIssuer.registered_at.asc())
        if status:
            query = query.filter(TrustedIssuer.status == status)
        issuers = query.all()
        # JSON list membership is filtered in Python to stay backend-agnostic
        if topic:
            issuers = [i for i in issuers if topic in (i.authorized_claims or [])]
        return issuers

    @staticmethod
    def update_issuer(
        db: Session,
        issuer_id: str,
        name: Optional[str] = None,
        metadata: Optional[Dict] = None,
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> TrustedIssuer:
        """Rename an issuer and/or merge new metadata keys into the existing ones."""
        issuer = TrustedIssuerDirectory.get_issuer(db, issuer_id)

        changes = {}
        if name is not None:
            if is_blank(name):
                raise ValidationError("Issuer name cannot be blank")
            changes["name"] = {"old": issuer.name, "new": name.strip()}
            issuer.name = name.strip()
        if metadata:
            issuer.issuer_metadata = {**(issuer.issuer_metadata or {}), **metadata}
            changes["metadata"] = metadata

        if not changes:
            return issuer

        return _commit_issuer_change(db, issuer, changes, operator_id, request_info)

    @staticmethod
    def authorize(
        db: Session,
        issuer_id: str,
        topic: str,
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> TrustedIssuer:
        """Add `topic` to the issuer's authorized set (no effect on issued claims)."""
        issuer = TrustedIssuerDirectory.get_issuer(db, issuer_id)
        if issuer.status == IssuerStatus.REVOKED.value:
            raise InvalidStateError(f"Trusted issuer {issuer_id} is revoked")
        _require_known_topics(db, [topic])

        current = list(issuer.authorized_claims or [])
        if topic in current:
            return issuer

        issuer.authorized_claims = current + [topic]
        return _commit_issuer_change(
            db, issuer, {"authorized": topic}, operator_id, request_info,
        )

    @staticmethod
    def revoke_authorization(
        db: Session,
        issuer_id: str,
        topic: str,
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> TrustedIssuer:
        """Remove `topic` from the issuer's authorized set; already issued claims stay valid."""
        issuer = TrustedIssuerDirectory.get_issuer(db, issuer_id)

        current = list(issuer.authorized_claims or [])
        if topic not in current:
            return issuer

        issuer.authorized_claims = [t for t in current if t != topic]
        return _commit_issuer_change(
            db, issuer, {"deauthorized": topic}, operator_id, request_info,
        )

    @staticmethod
    def set_status(
        db: Session,
        issuer_id: str,
        status: IssuerStatus,
        reason: Optional[str] = None,
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> TrustedIssuer:
        """Move an issuer between active, suspended and revoked.

        Claims the issuer already issued are not touched, whatever the new status.

        Raises:
            InvalidStateError: the issuer is revoked (terminal).
        """
        issuer = TrustedIssuerDirectory.get_issuer(db, issuer_id)
        try:
            status = IssuerStatus(status)
        except ValueError:
            raise ValidationError(f"Invalid issuer status: {status!r}")

        if issuer.status == status.value:
            return issuer
        if issuer.status == IssuerStatus.REVOKED.value:
            raise InvalidStateError(f"Trusted issuer {issuer_id} is revoked; status is final")

        changes = {"status": {"old": issuer.status, "new": status.value}, "reason": reason}
        issuer.status = status.value
        issuer = _commit_issuer_change(db, issuer, changes, operator_id, request_info)

        logger.info(f"Trusted issuer {issuer_id} is now {status.value}")
        return issuer

    @staticmethod
    def is_authorized(db: Session, issuer_id: str, topic: str) -> bool:
        """True iff the issuer exists, is active, and holds `topic`."""
        issuer = db.get(TrustedIssuer, issuer_id)
        if issuer is None or issuer.status != IssuerStatus.ACTIVE.value:
            return False
        return topic in (issuer.authorized_claims or [])

    @staticmethod
    def increment_issued_count(db: Session, issuer_id: str) -> None:
        """Record a successful issuance. Joins the caller's transaction."""
        issuer = TrustedIssuerDirectory.get_issuer(db, issuer_id)
        issuer.issued_claims_count = (issuer.issued_claims_count or 0) + 1
        issuer.active_claims_count = (issuer.active_claims_count or 0) + 1
        issuer.last_activity = datetime.utcnow()

    @staticmethod
    def decrement_active_count(db: Session, issuer_id: str) -> None:
        """Record that one of the issuer's claims was revoked or seen expired."""
        issuer = db.get(TrustedIssuer, issuer_id)
        if issuer is None:
            return
        issuer.active_claims_count = max(0, (issuer.active_claims_count or 0) - 1)
        issuer.last_activity = datetime.utcnow()


def _commit_issuer_change(db, issuer, changes, operator_id, request_info) -> TrustedIssuer:
    issuer.last_activity = datetime.utcnow()
    AuditService.log(
        db, issuer_subject(issuer.id), AuditOperation.ISSUER_UPDATE,
        operator_id=operator_id, changes=changes, request_info=request_info,
    )
    db.commit()
    db.refresh(issuer)
    return issuer


def _require_known_topics(db: Session, topics: List[str]) -> None:
    for topic in topics:
        if db.get(ClaimTopicDefinition, topic) is None:
            raise ValidationError(f"Unknown claim topic: {topic}")


def _dedupe(items: List[str]) -> List[str]:
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen
