"""
Compliance Reporter — platform-wide compliance summary and per-identity checks.

Read-only: expiry is evaluated against `as_of` in memory and never written
back. Records created after `as_of` are left out of the counts; statuses are
taken as currently stored.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from partisipro_identity.config import get_settings
from partisipro_identity.errors import NotFoundError
from partisipro_identity.logger import get_logger
from partisipro_identity.models.claim import Claim
from partisipro_identity.models.enums import ClaimStatus, IdentityStatus, IssuerStatus
from partisipro_identity.models.identity import IdentityRecord
from partisipro_identity.models.issuer import TrustedIssuer
from partisipro_identity.schemas.schemas import ComplianceCheckResult, ComplianceReport
from partisipro_identity.services.claim_ledger import effective_status
from partisipro_identity.services.topic_registry import ClaimTopicRegistry
from partisipro_identity.services.verification_engine import VerificationEngine
from partisipro_identity.utils.validators import normalize_datetime

settings = get_settings()
logger = get_logger(__name__)


@dataclass
class ScoreWeights:
    """Relative weight of each violation ratio in the compliance score."""
    unverified: float = field(default_factory=lambda: settings.COMPLIANCE_WEIGHT_UNVERIFIED)
    stale_verification: float = field(default_factory=lambda: settings.COMPLIANCE_WEIGHT_STALE_VERIFICATION)
    expired_claims: float = field(default_factory=lambda: settings.COMPLIANCE_WEIGHT_EXPIRED_CLAIMS)
    untrusted_issuer: float = field(default_factory=lambda: settings.COMPLIANCE_WEIGHT_UNTRUSTED_ISSUER)


class ComplianceReporter:
    """Aggregates IdentityRegistry and ClaimLedger state for compliance reporting."""

    @staticmethod
    def generate_report(
        db: Session,
        as_of: Optional[datetime] = None,
        weights: Optional[ScoreWeights] = None,
    ) -> ComplianceReport:
        """Summarize identity and claim health at `as_of` (default: now).

        compliance_score = 100 * (1 - sum(w * ratio) / sum(w)) over the ratios
        that have a non-empty population:
            unverified          pending / non-revoked identities
            stale_verification  verified-but-failing / verified identities
            expired_claims      expired / all claims
            untrusted_issuer    active claims of non-active issuers / active claims
        """
        generated_at = datetime.utcnow()
        as_of = normalize_datetime(as_of) or generated_at
        weights = weights or ScoreWeights()

        identities = db.query(IdentityRecord).filter(IdentityRecord.created_at <= as_of).all()
        claims = db.query(Claim).filter(Claim.issued_at <= as_of).all()
        issuer_status = {i.id: i.status for i in db.query(TrustedIssuer).all()}
        baseline = ClaimTopicRegistry.list_required_topics(db)

        status_counts = {s.value: 0 for s in IdentityStatus}
        for identity in identities:
            status_counts[identity.status] = status_counts.get(identity.status, 0) + 1

        claim_counts = {s.value: 0 for s in ClaimStatus}
        untrusted = 0
        for claim in claims:
            status = effective_status(claim, as_of)
            claim_counts[status] += 1
            if status == ClaimStatus.ACTIVE.value and issuer_status.get(claim.issuer) != IssuerStatus.ACTIVE.value:
                untrusted += 1

        stale = 0
        for identity in identities:
            if identity.status != IdentityStatus.VERIFIED.value:
                continue
            snapshot = VerificationEngine.collect_compliance(db, identity.id, baseline, as_of)
            if not baseline or not snapshot.compliant:
                stale += 1

        verified = status_counts[IdentityStatus.VERIFIED.value]
        pending = status_counts[IdentityStatus.PENDING.value]
        revoked = status_counts[IdentityStatus.REVOKED.value]
        live_identities = len(identities) - revoked

        score = _weighted_score([
            (weights.unverified, pending, live_identities),
            (weights.stale_verification, stale, verified),
            (weights.expired_claims, claim_counts[ClaimStatus.EXPIRED.value], len(claims)),
            (weights.untrusted_issuer, untrusted, claim_counts[ClaimStatus.ACTIVE.value]),
        ])

        recommendations = []
        if not baseline:
            recommendations.append(
                "Define at least one required claim topic to establish a compliance baseline"
            )
        if live_identities and verified / live_identities * 100 < settings.COMPLIANCE_TARGET_VERIFICATION_RATE:
            recommendations.append(
                "Increase identity verification rate by implementing automated KYC processes"
            )
        if claim_counts[ClaimStatus.EXPIRED.value]:
            recommendations.append(
                "Implement automated claim renewal system to prevent expired claims"
            )
        if stale:
            recommendations.append(
                f"Re-verify {stale} verified identities that no longer hold every required claim"
            )
        if untrusted:
            recommendations.append(
                f"Review {untrusted} active claims issued by suspended or revoked issuers"
            )

        report = ComplianceReport(
            generated_at=generated_at,
            as_of=as_of,
            total_identities=len(identities),
            verified_identities=verified,
            pending_identities=pending,
            revoked_identities=revoked,
            total_claims=len(claims),
            active_claims=claim_counts[ClaimStatus.ACTIVE.value],
            expired_claims=claim_counts[ClaimStatus.EXPIRED.value],
            revoked_claims=claim_counts[ClaimStatus.REVOKED.value],
            stale_verifications=stale,
            untrusted_issuer_claims=untrusted,
            compliance_score=score,
            recommendations=recommendations,
            next_check_due=_next_check_due(claims, as_of),
        )
        logger.info(
            f"Compliance report as of {as_of.isoformat()}: score={score} "
            f"identities={len(identities)} claims={len(claims)}"
        )
        return report

    @staticmethod
    def check_identity(
        db: Session,
        user_address: str,
        as_of: Optional[datetime] = None,
    ) -> ComplianceCheckResult:
        """List what keeps one identity from being compliant and what to do about it."""
        checked_at = normalize_datetime(as_of) or datetime.utcnow()

        identity = db.get(IdentityRecord, user_address)
        if identity is None:
            raise NotFoundError(f"Identity not found for address: {user_address}")

        claims = (
            db.query(Claim)
            .filter(Claim.identity_id == user_address, Claim.issued_at <= checked_at)
            .all()
        )
        violations: List[str] = []
        actions: List[str] = []

        if identity.status == IdentityStatus.REVOKED.value:
            return ComplianceCheckResult(
                identity_id=identity.id,
                is_compliant=False,
                checked_at=checked_at,
                violations=["Identity is revoked"],
            )

        baseline = ClaimTopicRegistry.list_required_topics(db)
        snapshot = VerificationEngine.collect_compliance(db, identity.id, baseline, checked_at)
        expired_topics = {c.claim_topic for c in snapshot.expired}

        for topic_id in snapshot.missing:
            topic = ClaimTopicRegistry.get_topic(db, topic_id)
            if topic_id in expired_topics:
                violations.append(f"Required claim {topic_id} has expired")
                if topic.renewable:
                    actions.append(f"Renew the {topic_id} claim")
                else:
                    actions.append(f"Obtain a new {topic_id} claim from a trusted issuer")
            else:
                violations.append(f"Required claim {topic_id} is missing")
                actions.append(f"Obtain a {topic_id} claim from a trusted issuer")

        compliant = bool(baseline) and snapshot.compliant
        if identity.status == IdentityStatus.VERIFIED.value and not compliant:
            violations.append("Identity is marked verified but does not meet the required claims")
            actions.append("Re-run identity verification")
        elif identity.status == IdentityStatus.PENDING.value and compliant:
            actions.append("Re-run identity verification to promote the identity to verified")

        issuer_status: Dict[str, str] = {}
        near_expiry = checked_at + timedelta(days=settings.NEAR_EXPIRY_DAYS)
        for claim in claims:
            if effective_status(claim, checked_at) != ClaimStatus.ACTIVE.value:
                continue
            if claim.issuer not in issuer_status:
                issuer = db.get(TrustedIssuer, claim.issuer)
                issuer_status[claim.issuer] = issuer.status if issuer else IssuerStatus.REVOKED.value
            if issuer_status[claim.issuer] != IssuerStatus.ACTIVE.value:
                violations.append(
                    f"Claim {claim.id} ({claim.claim_topic}) was issued by "
                    f"{issuer_status[claim.issuer]} issuer {claim.issuer}"
                )
                actions.append(f"Replace the {claim.claim_topic} claim with one from an active issuer")
            if claim.expires_at is not None and claim.expires_at <= near_expiry:
                actions.append(
                    f"Renew the {claim.claim_topic} claim before {claim.expires_at.date().isoformat()}"
                )

        return ComplianceCheckResult(
            identity_id=identity.id,
            is_compliant=not violations,
            checked_at=checked_at,
            violations=violations,
            required_actions=list(dict.fromkeys(actions)),
            next_check_due=_next_check_due(claims, checked_at),
        )


def _weighted_score(components) -> float:
    """components: (weight, violations, population); empty populations are skipped."""
    total_weight = 0.0
    penalty = 0.0
    for weight, violations, population in components:
        if population <= 0 or weight <= 0:
            continue
        total_weight += weight
        penalty += weight * min(violations / population, 1.0)
    if total_weight == 0:
        return 100.0
    return round(100.0 * (1 - penalty / total_weight), 2)


def _next_check_due(claims: List[Claim], as_of: datetime) -> datetime:
    """Earliest upcoming expiry of an active claim, at most one check interval away."""
    due = as_of + timedelta(hours=settings.COMPLIANCE_CHECK_INTERVAL_HOURS)
    for claim in claims:
        if effective_status(claim, as_of) == ClaimStatus.ACTIVE.value and claim.expires_at is not None:
            due = min(due, claim.expires_at)
    return due
