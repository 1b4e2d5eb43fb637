"""
Verification Engine — decides whether an identity currently satisfies a set
of required claim topics, and whether a single claim is valid.

Non-compliance is a normal result (is_verified=False with a reason), never an
exception. Decisions are always derived from the claims table; the identity's
claim-reference list is not trusted here. Expiry is computed from the clock on
every call, so results are correct whether or not an expiry transition has
been written back yet.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from partisipro_identity.config import get_settings
from partisipro_identity.logger import get_logger
from partisipro_identity.models.claim import Claim
from partisipro_identity.models.enums import ClaimStatus, IdentityStatus
from partisipro_identity.models.identity import IdentityRecord
from partisipro_identity.schemas.schemas import (
    ClaimReference, ClaimResponse, ClaimVerificationResult,
    IdentityResponse, IdentityVerificationResult,
)
from partisipro_identity.services.topic_registry import ClaimTopicRegistry
from partisipro_identity.utils.locks import identity_locks
from partisipro_identity.utils.validators import days_until

settings = get_settings()
logger = get_logger(__name__)


@dataclass
class ComplianceSnapshot:
    """Per-topic outcome of checking one identity against a topic set."""
    satisfied: Dict[str, Claim] = field(default_factory=dict)   # topic -> newest valid claim
    missing: List[str] = field(default_factory=list)
    expired: List[Claim] = field(default_factory=list)          # expired claims of missing topics
    overdue: List[Claim] = field(default_factory=list)          # still "active" but past expiry

    @property
    def compliant(self) -> bool:
        return not self.missing


class VerificationEngine:
    """Read-side compliance decisions over the ClaimLedger."""

    @staticmethod
    def collect_compliance(
        db: Session,
        identity_id: str,
        topics: List[str],
        now: Optional[datetime] = None,
    ) -> ComplianceSnapshot:
        """Check `identity_id` against `topics` at `now`. Pure read.

        Claims issued after `now` are ignored, so a past moment can be replayed.
        """
        now = now or datetime.utcnow()
        snapshot = ComplianceSnapshot()
        if not topics:
            return snapshot

        claims = (
            db.query(Claim)
            .filter(
                Claim.identity_id == identity_id,
                Claim.claim_topic.in_(topics),
                Claim.issued_at <= now,
            )
            .all()
        )

        by_topic: Dict[str, List[Claim]] = {}
        for claim in claims:
            by_topic.setdefault(claim.claim_topic, []).append(claim)
            if claim.status == ClaimStatus.ACTIVE.value and claim.is_expired_at(now):
                snapshot.overdue.append(claim)

        for topic in topics:
            candidates = by_topic.get(topic, [])
            valid = [
                c for c in candidates
                if c.status == ClaimStatus.ACTIVE.value and not c.is_expired_at(now)
            ]
            if valid:
                snapshot.satisfied[topic] = max(valid, key=lambda c: c.issued_at)
                continue

            snapshot.missing.append(topic)
            snapshot.expired.extend(
                c for c in candidates
                if c.status == ClaimStatus.EXPIRED.value
                or (c.status == ClaimStatus.ACTIVE.value and c.is_expired_at(now))
            )

        return snapshot

    @staticmethod
    def verify_identity(
        db: Session,
        user_address: str,
        required_claims: Optional[List[str]] = None,
        report_expiry: bool = False,
    ) -> IdentityVerificationResult:
        """Decide whether an identity holds a valid claim for every required topic.

        Args:
            db: Database session.
            user_address: Identity id (wallet address).
            required_claims: Topics to check; defaults to the catalog's required topics.
            report_expiry: Also report days left on each satisfying claim.

        Returns:
            IdentityVerificationResult. is_verified is true iff no topic is
            missing and the identity is not revoked.
        """
        # Imported here: both services depend on this engine
        from partisipro_identity.services.claim_ledger import ClaimLedger
        from partisipro_identity.services.identity_registry import IdentityRegistry

        identity = db.get(IdentityRecord, user_address)
        if identity is None:
            return IdentityVerificationResult(is_verified=False, reason="Identity not found")

        use_baseline = required_claims is None
        topics = ClaimTopicRegistry.list_required_topics(db) if use_baseline else list(dict.fromkeys(required_claims))

        now = datetime.utcnow()
        snapshot = VerificationEngine.collect_compliance(db, identity.id, topics, now)

        if settings.MATERIALIZE_EXPIRY_ON_READ:
            for claim in snapshot.overdue:
                ClaimLedger.resolve_expiry(db, claim.id)

        # Lazy demotion/promotion: only against the platform baseline.
        # The status write is decided on a re-read taken under the identity lock,
        # so a claim revoked since the first snapshot cannot be promoted over.
        if use_baseline and identity.status != IdentityStatus.REVOKED.value:
            with identity_locks.hold(identity.id):
                db.expire_all()
                now = datetime.utcnow()
                snapshot = VerificationEngine.collect_compliance(db, identity.id, topics, now)
                if IdentityRegistry.reconcile_status(db, identity, allow_demotion=True, snapshot=snapshot):
                    db.commit()
                    db.refresh(identity)

        expired_refs = []
        for claim in snapshot.expired:
            ref = claim.to_reference()
            ref["status"] = ClaimStatus.EXPIRED.value
            expired_refs.append(ClaimReference(**ref))

        expires_in = {}
        if report_expiry:
            for topic, claim in snapshot.satisfied.items():
                if claim.expires_at is not None:
                    expires_in[topic] = days_until(claim.expires_at, now)

        if identity.status == IdentityStatus.REVOKED.value:
            is_verified = False
            reason = "Identity revoked"
        elif snapshot.missing:
            is_verified = False
            reason = "Required claims missing or expired"
        else:
            is_verified = True
            reason = None

        logger.info(
            f"Verified identity {user_address}: verified={is_verified} missing={snapshot.missing}"
        )
        return IdentityVerificationResult(
            is_verified=is_verified,
            identity=IdentityResponse.model_validate(identity),
            missing_claims=snapshot.missing,
            expired_claims=expired_refs,
            expires_in=expires_in,
            reason=reason,
        )

    @staticmethod
    def verify_claim(db: Session, claim_id: str) -> ClaimVerificationResult:
        """Valid iff the claim exists, is active and has not reached its expiry."""
        from partisipro_identity.services.claim_ledger import ClaimLedger

        claim = db.get(Claim, claim_id)
        if claim is None:
            return ClaimVerificationResult(is_valid=False, reason="not found")

        now = datetime.utcnow()
        if claim.status == ClaimStatus.REVOKED.value:
            return ClaimVerificationResult(
                is_valid=False,
                claim=ClaimResponse.model_validate(claim),
                reason=f"revoked: {claim.revocation_reason}",
            )

        if claim.status == ClaimStatus.EXPIRED.value or claim.is_expired_at(now):
            if claim.status == ClaimStatus.ACTIVE.value and settings.MATERIALIZE_EXPIRY_ON_READ:
                claim = ClaimLedger.resolve_expiry(db, claim.id)
            result = ClaimResponse.model_validate(claim).model_copy(
                update={"status": ClaimStatus.EXPIRED}
            )
            return ClaimVerificationResult(is_valid=False, claim=result, reason="expired")

        expires_in = days_until(claim.expires_at, now) if claim.expires_at else None
        return ClaimVerificationResult(
            is_valid=True,
            claim=ClaimResponse.model_validate(claim),
            expires_in=expires_in,
        )
