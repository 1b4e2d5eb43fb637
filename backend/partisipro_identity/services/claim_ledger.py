"""
Claim Ledger — the only writer of claim state.

Every mutation runs under the owning identity's lock and commits once, together
with its side effects: the identity's claim-reference projection, issuer
counters, the audit entry and any identity status change.

Lifecycle:
    active -> expired   (time-driven, materialized lazily)
    active -> revoked   (explicit, needs a reason; terminal)
Expired claims are never reactivated; renewal issues a new claim.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from partisipro_identity.config import get_settings
from partisipro_identity.errors import (
    IdentityRegistryError, InvalidStateError, NotFoundError,
    UnauthorizedIssuerError, ValidationError,
)
from partisipro_identity.logger import get_logger
from partisipro_identity.models.claim import Claim
from partisipro_identity.models.enums import AuditOperation, ClaimStatus, IdentityStatus
from partisipro_identity.models.identity import IdentityRecord
from partisipro_identity.schemas.claim_data import validate_claim_data
from partisipro_identity.schemas.schemas import BatchItemResult, BatchResult, ClaimBatchItem
from partisipro_identity.services.audit_service import AuditService
from partisipro_identity.services.identity_registry import IdentityRegistry, summarize_batch
from partisipro_identity.services.issuer_directory import TrustedIssuerDirectory
from partisipro_identity.services.topic_registry import ClaimTopicRegistry
from partisipro_identity.utils.hashing import generate_claim_id, generate_verification_hash
from partisipro_identity.utils.locks import identity_locks
from partisipro_identity.utils.validators import is_blank, normalize_datetime

settings = get_settings()
logger = get_logger(__name__)


class ClaimLedger:
    """Issuance, revocation, update, renewal and expiry of claims."""

    @staticmethod
    def issue_claim(
        db: Session,
        identity_id: str,
        topic: str,
        issuer_id: str,
        data: Optional[Dict[str, Any]] = None,
        expires_at: Optional[datetime] = None,
        verification_hash: Optional[str] = None,
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> Claim:
        """Issue a claim of `topic` by `issuer_id` against an identity.

        When `expires_at` is omitted the topic's default expiry applies.

        Raises:
            NotFoundError: identity or topic unknown.
            InvalidStateError: identity revoked.
            UnauthorizedIssuerError: issuer not active, not authorized for the
                topic, or outside the identity's issuer allowlist.
            ValidationError: expiry not in the future or payload invalid.
        """
        with identity_locks.hold(identity_id):
            try:
                claim = _issue(
                    db, identity_id, topic, issuer_id, data, expires_at,
                    verification_hash, operator_id, request_info,
                )
                db.commit()
            except IdentityRegistryError:
                db.rollback()
                raise

        db.refresh(claim)
        logger.info(f"Claim {claim.id} ({topic}) issued by {issuer_id} for identity {identity_id}")
        return claim

    @staticmethod
    def get_claim(db: Session, claim_id: str) -> Claim:
        claim = db.get(Claim, claim_id)
        if claim is None:
            raise NotFoundError(f"Claim not found: {claim_id}")
        return claim

    @staticmethod
    def list_claims(
        db: Session,
        identity_id: Optional[str] = None,
        topic: Optional[str] = None,
        issuer: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[Claim]:
        """Filter claims; the status filter sees expiry even if not yet written back."""
        query = db.query(Claim).order_by(Claim.issued_at.asc(), Claim.id.asc())
        if identity_id:
            query = query.filter(Claim.identity_id == identity_id)
        if topic:
            query = query.filter(Claim.claim_topic == topic)
        if issuer:
            query = query.filter(Claim.issuer == issuer)
        claims = query.all()

        now = datetime.utcnow()
        if settings.MATERIALIZE_EXPIRY_ON_READ:
            for claim in claims:
                if claim.status == ClaimStatus.ACTIVE.value and claim.is_expired_at(now):
                    ClaimLedger.resolve_expiry(db, claim.id)

        if status:
            claims = [c for c in claims if effective_status(c, now) == status]
        return claims

    @staticmethod
    def revoke_claim(
        db: Session,
        claim_id: str,
        reason: str,
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> Claim:
        """Revoke an active claim.

        A verified identity that no longer meets the required-topic baseline
        afterwards is demoted to pending.

        Raises:
            NotFoundError: claim unknown.
            ValidationError: blank reason.
            InvalidStateError: claim already revoked or expired.
        """
        claim = ClaimLedger.get_claim(db, claim_id)
        if is_blank(reason):
            raise ValidationError("A revocation reason is required")

        with identity_locks.hold(claim.identity_id):
            try:
                db.refresh(claim)
                _require_active(db, claim, "revoke")

                now = datetime.utcnow()
                claim.status = ClaimStatus.REVOKED.value
                claim.revocation_reason = reason.strip()
                claim.updated_at = now
                db.flush()

                IdentityRegistry.sync_claim_reference(db, claim)
                TrustedIssuerDirectory.decrement_active_count(db, claim.issuer)
                AuditService.log(
                    db, claim.identity_id, AuditOperation.CLAIM_REVOKE,
                    operator_id=operator_id,
                    changes={"claim_id": claim.id, "claim_topic": claim.claim_topic,
                             "reason": claim.revocation_reason},
                    request_info=request_info,
                )
                identity = IdentityRegistry.get_identity(db, claim.identity_id)
                IdentityRegistry.reconcile_status(db, identity, allow_demotion=True, operator_id=operator_id)
                db.commit()
            except IdentityRegistryError:
                db.rollback()
                raise

        db.refresh(claim)
        logger.info(f"Claim {claim_id} revoked: {claim.revocation_reason}")
        return claim

    @staticmethod
    def update_claim(
        db: Session,
        claim_id: str,
        data: Optional[Dict[str, Any]] = None,
        expires_at: Optional[datetime] = None,
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> Claim:
        """Edit the payload (merged) and/or expiry of an active claim.

        Raises:
            InvalidStateError: claim revoked or expired.
            ValidationError: nothing to change, expiry not in the future, bad payload.
        """
        if data is None and expires_at is None:
            raise ValidationError("Nothing to update: provide data and/or expires_at")
        claim = ClaimLedger.get_claim(db, claim_id)

        with identity_locks.hold(claim.identity_id):
            try:
                db.refresh(claim)
                _require_active(db, claim, "update")

                now = datetime.utcnow()
                changes: Dict[str, Any] = {"claim_id": claim.id}
                if expires_at is not None:
                    expires_at = normalize_datetime(expires_at)
                    if expires_at <= claim.issued_at or expires_at <= now:
                        raise ValidationError("expires_at must be in the future and after issued_at")
                    changes["expires_at"] = {"old": claim.expires_at, "new": expires_at}
                    claim.expires_at = expires_at
                if data is not None:
                    merged = validate_claim_data(claim.claim_topic, {**(claim.data or {}), **data})
                    changes["data"] = data
                    claim.data = merged

                claim.updated_at = now
                db.flush()

                IdentityRegistry.sync_claim_reference(db, claim)
                AuditService.log(
                    db, claim.identity_id, AuditOperation.CLAIM_UPDATE,
                    operator_id=operator_id, changes=changes, request_info=request_info,
                )
                db.commit()
            except IdentityRegistryError:
                db.rollback()
                raise

        db.refresh(claim)
        logger.info(f"Claim {claim_id} updated")
        return claim

    @staticmethod
    def renew_claim(
        db: Session,
        claim_id: str,
        expires_at: Optional[datetime] = None,
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> Claim:
        """Issue a fresh claim continuing an active or expired one of a renewable topic.

        The original claim is left as it is.

        Raises:
            InvalidStateError: topic not renewable or original claim revoked.
            UnauthorizedIssuerError: the original issuer can no longer issue the topic.
        """
        original = ClaimLedger.get_claim(db, claim_id)

        with identity_locks.hold(original.identity_id):
            try:
                db.refresh(original)
                topic = ClaimTopicRegistry.get_topic(db, original.claim_topic)
                if not topic.renewable:
                    raise InvalidStateError(f"Claims of topic {topic.id} are not renewable")

                now = datetime.utcnow()
                if original.status == ClaimStatus.ACTIVE.value and original.is_expired_at(now):
                    _mark_expired(db, original, now)
                if original.status == ClaimStatus.REVOKED.value:
                    raise InvalidStateError(f"Claim {claim_id} is revoked and cannot be renewed")

                renewed = _issue(
                    db, original.identity_id, original.claim_topic, original.issuer,
                    dict(original.data or {}), expires_at, None, operator_id, request_info,
                )
                AuditService.log(
                    db, original.identity_id, AuditOperation.CLAIM_RENEW,
                    operator_id=operator_id,
                    changes={"renewed_from": original.id, "claim_id": renewed.id,
                             "expires_at": renewed.expires_at},
                    request_info=request_info,
                )
                db.commit()
            except IdentityRegistryError:
                db.rollback()
                raise

        db.refresh(renewed)
        logger.info(f"Claim {claim_id} renewed as {renewed.id}")
        return renewed

    @staticmethod
    def resolve_expiry(db: Session, claim_id: str) -> Claim:
        """Write back active -> expired for a claim whose expiry has passed."""
        claim = ClaimLedger.get_claim(db, claim_id)
        now = datetime.utcnow()
        if claim.status != ClaimStatus.ACTIVE.value or not claim.is_expired_at(now):
            return claim

        with identity_locks.hold(claim.identity_id):
            db.refresh(claim)
            if claim.status == ClaimStatus.ACTIVE.value and claim.is_expired_at(now):
                _mark_expired(db, claim, now)
                db.commit()
                db.refresh(claim)

        return claim

    @staticmethod
    def sweep_expired(db: Session) -> int:
        """Materialize every overdue expiry. Intended for an external scheduler."""
        now = datetime.utcnow()
        overdue = (
            db.query(Claim.id)
            .filter(
                Claim.status == ClaimStatus.ACTIVE.value,
                Claim.expires_at.isnot(None),
                Claim.expires_at <= now,
            )
            .all()
        )
        for (claim_id,) in overdue:
            ClaimLedger.resolve_expiry(db, claim_id)
        if overdue:
            logger.info(f"Expiry sweep transitioned {len(overdue)} claims")
        return len(overdue)

    @staticmethod
    def batch_update(
        db: Session,
        updates: List[Union[ClaimBatchItem, Dict]],
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> BatchResult:
        """Apply updates/revocations item by item; a failing item never undoes another."""
        if len(updates) > settings.BATCH_MAX_ITEMS:
            raise ValidationError(f"Batch exceeds {settings.BATCH_MAX_ITEMS} items")

        results: List[BatchItemResult] = []
        for item in updates:
            if isinstance(item, dict):
                item = ClaimBatchItem(**item)
            try:
                if item.status == ClaimStatus.REVOKED:
                    ClaimLedger.revoke_claim(
                        db, item.claim_id, item.revocation_reason or "",
                        operator_id=operator_id, request_info=request_info,
                    )
                elif item.status is not None:
                    raise ValidationError(
                        f"Status {item.status.value!r} cannot be set directly; only 'revoked' is allowed"
                    )
                else:
                    ClaimLedger.update_claim(
                        db, item.claim_id, data=item.data, expires_at=item.expires_at,
                        operator_id=operator_id, request_info=request_info,
                    )
                results.append(BatchItemResult(key=item.claim_id, success=True))
            except IdentityRegistryError as e:
                db.rollback()
                results.append(BatchItemResult(
                    key=item.claim_id, success=False, error=e.message, error_code=e.error_code,
                ))

        return summarize_batch("claim update", results)


def effective_status(claim: Claim, now: datetime) -> str:
    """Stored status, with overdue active claims reported as expired."""
    if claim.status == ClaimStatus.ACTIVE.value and claim.is_expired_at(now):
        return ClaimStatus.EXPIRED.value
    return claim.status


def _issue(
    db: Session,
    identity_id: str,
    topic_id: str,
    issuer_id: str,
    data: Optional[Dict[str, Any]],
    expires_at: Optional[datetime],
    verification_hash: Optional[str],
    operator_id: Optional[str],
    request_info: Optional[Dict],
) -> Claim:
    """Create a claim and its side effects without committing. Caller holds the identity lock."""
    identity = db.get(IdentityRecord, identity_id)
    if identity is None:
        raise NotFoundError(f"Identity not found for address: {identity_id}")
    # The reference list is rewritten whole; read it under the lock
    db.refresh(identity)
    if identity.status == IdentityStatus.REVOKED.value:
        raise InvalidStateError(f"Identity {identity_id} is revoked")

    topic = ClaimTopicRegistry.get_topic(db, topic_id)

    if not TrustedIssuerDirectory.is_authorized(db, issuer_id, topic.id):
        raise UnauthorizedIssuerError(f"Issuer {issuer_id} is not authorized to issue {topic.id}")
    allowlist = identity.trusted_issuers or []
    if allowlist and issuer_id not in allowlist:
        raise UnauthorizedIssuerError(f"Issuer {issuer_id} is not trusted by identity {identity_id}")

    now = datetime.utcnow()
    expires_at = normalize_datetime(expires_at)
    if expires_at is None and topic.default_expiry_days:
        expires_at = now + timedelta(days=topic.default_expiry_days)
    elif expires_at is not None and expires_at <= now:
        raise ValidationError("expires_at must be after the issuance time")

    payload = validate_claim_data(topic.id, data)

    claim_id = generate_claim_id()
    claim = Claim(
        id=claim_id,
        identity_id=identity_id,
        claim_topic=topic.id,
        issuer=issuer_id,
        data=payload,
        issued_at=now,
        expires_at=expires_at,
        status=ClaimStatus.ACTIVE.value,
        verification_hash=verification_hash or generate_verification_hash({
            "claim_id": claim_id, "identity_id": identity_id, "claim_topic": topic.id,
            "issuer": issuer_id, "data": payload, "issued_at": now.isoformat(),
        }),
        updated_at=now,
    )
    db.add(claim)
    db.flush()

    IdentityRegistry.append_claim_reference(db, identity, claim)
    TrustedIssuerDirectory.increment_issued_count(db, issuer_id)
    AuditService.log(
        db, identity_id, AuditOperation.CLAIM_ISSUE,
        operator_id=operator_id,
        changes={"claim_id": claim_id, "claim_topic": topic.id, "issuer": issuer_id,
                 "expires_at": expires_at},
        request_info=request_info,
    )
    IdentityRegistry.reconcile_status(db, identity, allow_demotion=False, operator_id=operator_id)
    return claim


def _require_active(db: Session, claim: Claim, action: str) -> None:
    """Materialize a due expiry, then insist the claim is still active."""
    now = datetime.utcnow()
    if claim.status == ClaimStatus.ACTIVE.value and claim.is_expired_at(now):
        _mark_expired(db, claim, now)
        db.commit()
    if claim.status != ClaimStatus.ACTIVE.value:
        raise InvalidStateError(f"Cannot {action} claim {claim.id}: claim is {claim.status}")


def _mark_expired(db: Session, claim: Claim, now: datetime) -> None:
    claim.status = ClaimStatus.EXPIRED.value
    claim.updated_at = now
    db.flush()

    IdentityRegistry.sync_claim_reference(db, claim)
    TrustedIssuerDirectory.decrement_active_count(db, claim.issuer)
    AuditService.log(
        db, claim.identity_id, AuditOperation.CLAIM_EXPIRE,
        changes={"claim_id": claim.id, "claim_topic": claim.claim_topic,
                 "expires_at": claim.expires_at},
    )
    logger.info(f"Claim {claim.id} expired at {claim.expires_at.isoformat()}")
