"""
Identity Registry — per-user identity records and their claim-reference projection.

The `claims` list on each identity mirrors the claims table for fast
identity-centric reads. ClaimLedger keeps it in sync inside the same
transaction as every claim mutation; `rebuild_claim_references` re-derives
it from the ledger when it is found inconsistent.
"""
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from partisipro_identity.config import get_settings
from partisipro_identity.errors import (
    ConflictError, IdentityRegistryError, InvalidStateError, NotFoundError, ValidationError,
)
from partisipro_identity.logger import get_logger
from partisipro_identity.models.claim import Claim
from partisipro_identity.models.enums import AuditOperation, IdentityStatus
from partisipro_identity.models.identity import IdentityRecord
from partisipro_identity.models.issuer import TrustedIssuer
from partisipro_identity.schemas.schemas import BatchItemResult, BatchResult, IdentityRegisterRequest
from partisipro_identity.services.audit_service import AuditService
from partisipro_identity.services.topic_registry import ClaimTopicRegistry
from partisipro_identity.services.verification_engine import ComplianceSnapshot, VerificationEngine
from partisipro_identity.utils.hashing import generate_identity_key
from partisipro_identity.utils.locks import identity_locks
from partisipro_identity.utils.validators import validate_wallet_address, is_blank

settings = get_settings()
logger = get_logger(__name__)


class IdentityRegistry:
    """Owns identity records; composes ledger lookups for status decisions."""

    @staticmethod
    def register_identity(
        db: Session,
        user_address: str,
        user_id: str,
        identity_key: Optional[str] = None,
        metadata: Optional[Dict] = None,
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> IdentityRecord:
        """Create the identity record for a platform user (status=pending).

        Raises:
            ValidationError: malformed address or blank user id.
            ConflictError: address or user already registered.
        """
        if not validate_wallet_address(user_address):
            raise ValidationError(f"Invalid wallet address: {user_address!r}")
        if is_blank(user_id):
            raise ValidationError("user_id is required")
        user_address = user_address.strip()

        with identity_locks.hold(user_address):
            if db.get(IdentityRecord, user_address) is not None:
                raise ConflictError(f"Identity already exists for address: {user_address}")
            if db.query(IdentityRecord).filter(IdentityRecord.user_id == user_id).first():
                raise ConflictError(f"User {user_id} already has a registered identity")

            now = datetime.utcnow()
            identity = IdentityRecord(
                id=user_address,
                user_id=user_id,
                identity_key=identity_key or generate_identity_key(user_address, user_id),
                status=IdentityStatus.PENDING.value,
                claims=[],
                trusted_issuers=[],
                identity_metadata=dict(metadata or {}),
                created_at=now,
                last_updated=now,
            )
            db.add(identity)
            try:
                AuditService.log(
                    db, user_address, AuditOperation.REGISTER,
                    operator_id=operator_id,
                    changes={"user_id": user_id, "identity_key": identity.identity_key},
                    request_info=request_info,
                    metadata=metadata,
                )
                db.commit()
            except IntegrityError:
                db.rollback()
                raise ConflictError(f"Identity already exists for address: {user_address}")

        db.refresh(identity)
        logger.info(f"Identity registered for address {user_address} (user {user_id})")
        return identity

    @staticmethod
    def get_identity(db: Session, user_address: str) -> IdentityRecord:
        identity = db.get(IdentityRecord, user_address)
        if identity is None:
            raise NotFoundError(f"Identity not found for address: {user_address}")
        return identity

    @staticmethod
    def list_identities(
        db: Session,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[int, List[IdentityRecord]]:
        query = db.query(IdentityRecord).order_by(IdentityRecord.created_at.desc())
        if status:
            query = query.filter(IdentityRecord.status == status)
        total = query.count()
        return total, query.offset(offset).limit(limit).all()

    @staticmethod
    def update_status(
        db: Session,
        user_address: str,
        new_status: IdentityStatus,
        reason: Optional[str] = None,
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> IdentityRecord:
        """Administrative status override, recorded in the audit trail.

        Verifying an identity that does not meet the required-topic baseline
        needs an explicit reason. Revocation is final.
        """
        try:
            new_status = IdentityStatus(new_status)
        except ValueError:
            raise ValidationError(f"Invalid identity status: {new_status!r}")

        with identity_locks.hold(user_address):
            identity = IdentityRegistry.get_identity(db, user_address)
            db.refresh(identity)

            if identity.status == IdentityStatus.REVOKED.value:
                raise InvalidStateError(f"Identity {user_address} is revoked; status is final")
            if identity.status == new_status.value:
                return identity

            if new_status == IdentityStatus.VERIFIED and is_blank(reason):
                baseline = ClaimTopicRegistry.list_required_topics(db)
                snapshot = VerificationEngine.collect_compliance(db, identity.id, baseline)
                if not baseline or not snapshot.compliant:
                    raise ValidationError(
                        "A reason is required to verify an identity that lacks required claims"
                    )

            old_status = identity.status
            _apply_status(identity, new_status)

            operation = AuditOperation.REVOKE if new_status == IdentityStatus.REVOKED else AuditOperation.STATUS_UPDATE
            AuditService.log(
                db, user_address, operation,
                operator_id=operator_id,
                changes={"old_status": old_status, "new_status": new_status.value, "reason": reason},
                request_info=request_info,
            )
            db.commit()

        db.refresh(identity)
        logger.info(f"Identity {user_address} status {old_status} -> {new_status.value}")
        return identity

    @staticmethod
    def set_trusted_issuers(
        db: Session,
        user_address: str,
        issuer_ids: List[str],
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> IdentityRecord:
        """Restrict which issuers may issue claims to this identity (empty list lifts it)."""
        for issuer_id in issuer_ids:
            if db.get(TrustedIssuer, issuer_id) is None:
                raise NotFoundError(f"Trusted issuer not found: {issuer_id}")

        with identity_locks.hold(user_address):
            identity = IdentityRegistry.get_identity(db, user_address)
            allowlist = list(dict.fromkeys(issuer_ids))
            old = list(identity.trusted_issuers or [])
            identity.trusted_issuers = allowlist
            identity.last_updated = datetime.utcnow()
            AuditService.log(
                db, user_address, AuditOperation.ALLOWLIST_UPDATE,
                operator_id=operator_id,
                changes={"old": old, "new": allowlist},
                request_info=request_info,
            )
            db.commit()

        db.refresh(identity)
        return identity

    @staticmethod
    def batch_register(
        db: Session,
        identities: List[Union[IdentityRegisterRequest, Dict]],
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> BatchResult:
        """Register many identities; each item succeeds or fails on its own."""
        if len(identities) > settings.BATCH_MAX_ITEMS:
            raise ValidationError(f"Batch exceeds {settings.BATCH_MAX_ITEMS} items")

        results: List[BatchItemResult] = []
        for item in identities:
            if isinstance(item, dict):
                item = IdentityRegisterRequest(**item)
            try:
                IdentityRegistry.register_identity(
                    db, item.user_address, item.user_id,
                    identity_key=item.identity_key,
                    metadata=item.metadata,
                    operator_id=operator_id,
                    request_info=request_info,
                )
                results.append(BatchItemResult(key=item.user_address, success=True))
            except IdentityRegistryError as e:
                db.rollback()
                results.append(BatchItemResult(
                    key=item.user_address, success=False, error=e.message, error_code=e.error_code,
                ))

        return summarize_batch("registration", results)

    @staticmethod
    def rebuild_claim_references(db: Session, user_address: str) -> IdentityRecord:
        """Re-derive the claim-reference projection from the claims table."""
        with identity_locks.hold(user_address):
            identity = IdentityRegistry.get_identity(db, user_address)
            claims = (
                db.query(Claim)
                .filter(Claim.identity_id == user_address)
                .order_by(Claim.issued_at.asc(), Claim.id.asc())
                .all()
            )
            identity.claims = [c.to_reference() for c in claims]
            identity.last_updated = datetime.utcnow()
            db.commit()

        db.refresh(identity)
        logger.info(f"Rebuilt {len(claims)} claim references for identity {user_address}")
        return identity

    # ─── Projection maintenance (called by ClaimLedger inside its transaction) ───

    @staticmethod
    def append_claim_reference(db: Session, identity: IdentityRecord, claim: Claim) -> None:
        identity.claims = list(identity.claims or []) + [claim.to_reference()]
        identity.last_updated = datetime.utcnow()

    @staticmethod
    def sync_claim_reference(db: Session, claim: Claim) -> None:
        """Overwrite the reference for `claim` on its identity (appending if it was lost)."""
        identity = IdentityRegistry.get_identity(db, claim.identity_id)
        ref = claim.to_reference()
        refs = list(identity.claims or [])
        for i, existing in enumerate(refs):
            if existing.get("claim_id") == claim.id:
                refs[i] = ref
                break
        else:
            logger.warning(f"Claim {claim.id} missing from identity {identity.id} projection; re-adding")
            refs.append(ref)
        identity.claims = refs
        identity.last_updated = datetime.utcnow()

    @staticmethod
    def reconcile_status(
        db: Session,
        identity: IdentityRecord,
        allow_demotion: bool = False,
        operator_id: Optional[str] = None,
        snapshot: Optional[ComplianceSnapshot] = None,
    ) -> bool:
        """Align the identity's status with the required-topic baseline.

        Promotes pending -> verified when compliant. Demotes verified -> pending
        only when `allow_demotion` (claim revocation, verification query).
        Does not commit; returns True when the status changed.
        """
        if identity.status == IdentityStatus.REVOKED.value:
            return False

        baseline = ClaimTopicRegistry.list_required_topics(db)
        if snapshot is None:
            snapshot = VerificationEngine.collect_compliance(db, identity.id, baseline)

        # verified requires at least one valid claim of a required topic
        compliant = bool(baseline) and snapshot.compliant and bool(snapshot.satisfied)

        if identity.status == IdentityStatus.PENDING.value and compliant:
            _apply_status(identity, IdentityStatus.VERIFIED)
            AuditService.log(
                db, identity.id, AuditOperation.VERIFY,
                operator_id=operator_id,
                changes={"old_status": IdentityStatus.PENDING.value,
                         "new_status": IdentityStatus.VERIFIED.value,
                         "claims": {t: c.id for t, c in snapshot.satisfied.items()}},
            )
            logger.info(f"Identity {identity.id} promoted to verified")
            return True

        if identity.status == IdentityStatus.VERIFIED.value and not compliant and allow_demotion:
            _apply_status(identity, IdentityStatus.PENDING)
            AuditService.log(
                db, identity.id, AuditOperation.STATUS_UPDATE,
                operator_id=operator_id,
                changes={"old_status": IdentityStatus.VERIFIED.value,
                         "new_status": IdentityStatus.PENDING.value,
                         "reason": f"Required claims missing or expired: {snapshot.missing}"},
            )
            logger.info(f"Identity {identity.id} demoted to pending (missing {snapshot.missing})")
            return True

        return False


def _apply_status(identity: IdentityRecord, status: IdentityStatus) -> None:
    now = datetime.utcnow()
    identity.status = status.value
    if status == IdentityStatus.VERIFIED and identity.verified_at is None:
        identity.verified_at = now
    identity.last_updated = now


def summarize_batch(kind: str, results: List[BatchItemResult]) -> BatchResult:
    failed = [r for r in results if not r.success]
    if failed:
        logger.warning(
            f"Batch {kind} completed with {len(failed)} errors: "
            + ", ".join(f"{r.key}: {r.error}" for r in failed)
        )
    logger.info(f"Batch {kind} completed: {len(results) - len(failed)} successful, {len(failed)} failed")
    return BatchResult(
        total=len(results),
        succeeded=len(results) - len(failed),
        failed=len(failed),
        results=results,
    )
