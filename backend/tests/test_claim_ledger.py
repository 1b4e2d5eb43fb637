from datetime import datetime, timedelta, timezone

import pytest

from conftest import ADDRESS, OTHER_ADDRESS
from partisipro_identity.errors import (
    InvalidStateError, NotFoundError, UnauthorizedIssuerError, ValidationError,
)
from partisipro_identity.models.claim import Claim
from partisipro_identity.models.enums import AuditOperation, ClaimStatus, IdentityStatus, IssuerStatus
from partisipro_identity.services.audit_service import AuditService
from partisipro_identity.services.claim_ledger import ClaimLedger
from partisipro_identity.services.identity_registry import IdentityRegistry
from partisipro_identity.services.issuer_directory import TrustedIssuerDirectory
from partisipro_identity.services.verification_engine import VerificationEngine


def _kyc(db, **kwargs):
    return ClaimLedger.issue_claim(
        db, ADDRESS, "KYC_APPROVED", "verihubs",
        {"verification_id": "vh-001", "verification_level": "enhanced"}, **kwargs
    )


def _backdate(db, claim, **delta):
    claim.expires_at = datetime.utcnow() - timedelta(**delta)
    db.commit()


def test_issue_claim(db, identity, verihubs):
    claim = _kyc(db)

    assert claim.status == ClaimStatus.ACTIVE.value
    assert claim.identity_id == ADDRESS
    assert claim.data["verification_level"] == "enhanced"
    assert claim.verification_hash.startswith("0x") and len(claim.verification_hash) == 66
    # KYC_APPROVED expires after 365 days by default
    assert claim.expires_at - claim.issued_at == timedelta(days=365)

    db.refresh(identity)
    assert [ref["claim_id"] for ref in identity.claims] == [claim.id]
    assert identity.status == IdentityStatus.VERIFIED.value

    db.refresh(verihubs)
    assert (verihubs.issued_claims_count, verihubs.active_claims_count) == (1, 1)

    ops = [e.operation for e in AuditService.get_trail(db, ADDRESS)]
    assert ops == ["register", "claim_issue", "verify"]


def test_issue_keeps_supplied_verification_hash_and_expiry(db, identity, verihubs):
    expires = datetime.now(timezone.utc) + timedelta(days=10)
    claim = _kyc(db, expires_at=expires, verification_hash="0xdeadbeef")
    assert claim.verification_hash == "0xdeadbeef"
    assert claim.expires_at == expires.astimezone(timezone.utc).replace(tzinfo=None)


def test_non_expiring_topic(db, identity):
    TrustedIssuerDirectory.register_issuer(db, "ojk", "OJK", authorized_claims=["AUTHORIZED_SPV"])
    claim = ClaimLedger.issue_claim(db, ADDRESS, "AUTHORIZED_SPV", "ojk", {"spv_name": "PT Tol Jaya"})
    assert claim.expires_at is None


def test_unknown_issuer_is_rejected(db, identity, verihubs):
    with pytest.raises(UnauthorizedIssuerError):
        ClaimLedger.issue_claim(db, ADDRESS, "KYC_APPROVED", "fakeissuer", {})
    assert db.query(Claim).count() == 0


def test_issuer_not_authorized_for_topic(db, identity, verihubs):
    with pytest.raises(UnauthorizedIssuerError):
        ClaimLedger.issue_claim(db, ADDRESS, "AUTHORIZED_SPV", "verihubs", {})
    assert db.query(Claim).count() == 0


def test_suspended_issuer_cannot_issue(db, identity, verihubs):
    TrustedIssuerDirectory.set_status(db, "verihubs", IssuerStatus.SUSPENDED)
    with pytest.raises(UnauthorizedIssuerError):
        _kyc(db)


def test_identity_allowlist_is_enforced(db, identity, verihubs):
    TrustedIssuerDirectory.register_issuer(db, "privy", "Privy", authorized_claims=["KYC_APPROVED"])
    IdentityRegistry.set_trusted_issuers(db, ADDRESS, ["privy"])

    with pytest.raises(UnauthorizedIssuerError):
        _kyc(db)
    assert ClaimLedger.issue_claim(db, ADDRESS, "KYC_APPROVED", "privy", {}).issuer == "privy"


def test_expiry_in_the_past_is_rejected(db, identity, verihubs):
    with pytest.raises(ValidationError):
        _kyc(db, expires_at=datetime.utcnow() - timedelta(days=1))
    assert db.query(Claim).count() == 0


def test_unknown_identity_or_topic(db, identity, verihubs):
    with pytest.raises(NotFoundError):
        ClaimLedger.issue_claim(db, OTHER_ADDRESS, "KYC_APPROVED", "verihubs", {})
    with pytest.raises(NotFoundError):
        ClaimLedger.issue_claim(db, ADDRESS, "NOT_A_TOPIC", "verihubs", {})


def test_revoked_identity_cannot_receive_claims(db, identity, verihubs):
    IdentityRegistry.update_status(db, ADDRESS, IdentityStatus.REVOKED, reason="fraud")
    with pytest.raises(InvalidStateError):
        _kyc(db)


def test_invalid_payload_names_the_field(db, identity, verihubs):
    with pytest.raises(ValidationError) as exc:
        ClaimLedger.issue_claim(
            db, ADDRESS, "KYC_APPROVED", "verihubs", {"verification_level": "platinum"},
        )
    assert "verification_level" in exc.value.message


def test_revoke_claim(db, identity, verihubs):
    claim = _kyc(db)
    revoked = ClaimLedger.revoke_claim(db, claim.id, "document fraud")

    assert revoked.status == ClaimStatus.REVOKED.value
    assert revoked.revocation_reason == "document fraud"

    db.refresh(identity)
    assert identity.claims[0]["status"] == "revoked"
    assert identity.status == IdentityStatus.PENDING.value

    db.refresh(verihubs)
    assert (verihubs.issued_claims_count, verihubs.active_claims_count) == (1, 0)

    ops = [e.operation for e in AuditService.get_trail(db, ADDRESS)]
    assert ops[-2:] == [AuditOperation.CLAIM_REVOKE.value, AuditOperation.STATUS_UPDATE.value]


def test_second_revoke_fails_and_keeps_reason(db, identity, verihubs):
    claim = _kyc(db)
    ClaimLedger.revoke_claim(db, claim.id, "document fraud")

    with pytest.raises(InvalidStateError):
        ClaimLedger.revoke_claim(db, claim.id, "another reason")
    assert ClaimLedger.get_claim(db, claim.id).revocation_reason == "document fraud"


def test_revoke_requires_reason(db, identity, verihubs):
    claim = _kyc(db)
    with pytest.raises(ValidationError):
        ClaimLedger.revoke_claim(db, claim.id, "   ")


def test_revoke_unknown_claim(db):
    with pytest.raises(NotFoundError):
        ClaimLedger.revoke_claim(db, "claim_missing", "reason")


def test_revoking_one_of_two_qualifying_claims_keeps_verified(db, identity, verihubs):
    first = _kyc(db)
    _kyc(db)
    ClaimLedger.revoke_claim(db, first.id, "superseded")
    assert IdentityRegistry.get_identity(db, ADDRESS).status == IdentityStatus.VERIFIED.value


def test_update_claim(db, identity, verihubs):
    claim = _kyc(db)
    new_expiry = datetime.utcnow() + timedelta(days=30)
    updated = ClaimLedger.update_claim(db, claim.id, data={"document_types": ["KTP"]}, expires_at=new_expiry)

    assert updated.data["document_types"] == ["KTP"]
    assert updated.data["verification_id"] == "vh-001"
    assert updated.expires_at == new_expiry

    db.refresh(identity)
    assert identity.claims[0]["expires_at"] == new_expiry.isoformat()


def test_update_claim_validation(db, identity, verihubs):
    claim = _kyc(db)
    with pytest.raises(ValidationError):
        ClaimLedger.update_claim(db, claim.id)
    with pytest.raises(ValidationError):
        ClaimLedger.update_claim(db, claim.id, expires_at=datetime.utcnow() - timedelta(hours=1))


def test_update_revoked_claim_fails(db, identity, verihubs):
    claim = _kyc(db)
    ClaimLedger.revoke_claim(db, claim.id, "fraud")
    with pytest.raises(InvalidStateError):
        ClaimLedger.update_claim(db, claim.id, data={"verification_id": "x"})


def test_update_expired_claim_fails_and_materializes_expiry(db, identity, verihubs):
    claim = _kyc(db)
    _backdate(db, claim, minutes=1)

    with pytest.raises(InvalidStateError):
        ClaimLedger.update_claim(db, claim.id, data={"verification_id": "x"})
    assert ClaimLedger.get_claim(db, claim.id).status == ClaimStatus.EXPIRED.value


def test_resolve_expiry(db, identity, verihubs):
    claim = _kyc(db)
    assert ClaimLedger.resolve_expiry(db, claim.id).status == ClaimStatus.ACTIVE.value

    _backdate(db, claim, days=1)
    expired = ClaimLedger.resolve_expiry(db, claim.id)
    assert expired.status == ClaimStatus.EXPIRED.value

    db.refresh(verihubs)
    assert verihubs.active_claims_count == 0
    assert AuditService.get_trail(db, ADDRESS)[-1].operation == AuditOperation.CLAIM_EXPIRE.value

    # A second resolution does not double count
    ClaimLedger.resolve_expiry(db, claim.id)
    ops = [e.operation for e in AuditService.get_trail(db, ADDRESS)]
    assert ops.count(AuditOperation.CLAIM_EXPIRE.value) == 1


def test_sweep_expired(db, identity, verihubs):
    first = _kyc(db)
    _kyc(db)
    _backdate(db, first, hours=2)

    assert ClaimLedger.sweep_expired(db) == 1
    assert ClaimLedger.sweep_expired(db) == 0


def test_expiry_write_back_leaves_status_until_verification(db, identity, verihubs):
    claim = _kyc(db)
    assert IdentityRegistry.get_identity(db, ADDRESS).status == IdentityStatus.VERIFIED.value
    _backdate(db, claim, hours=1)

    assert ClaimLedger.sweep_expired(db) == 1
    assert ClaimLedger.get_claim(db, claim.id).status == ClaimStatus.EXPIRED.value
    assert IdentityRegistry.get_identity(db, ADDRESS).status == IdentityStatus.VERIFIED.value

    result = VerificationEngine.verify_identity(db, ADDRESS)
    assert result.is_verified is False
    assert IdentityRegistry.get_identity(db, ADDRESS).status == IdentityStatus.PENDING.value


def test_resolve_expiry_leaves_status_until_verification(db, identity, verihubs):
    claim = _kyc(db)
    _backdate(db, claim, days=1)

    ClaimLedger.resolve_expiry(db, claim.id)
    assert IdentityRegistry.get_identity(db, ADDRESS).status == IdentityStatus.VERIFIED.value

    VerificationEngine.verify_identity(db, ADDRESS)
    assert IdentityRegistry.get_identity(db, ADDRESS).status == IdentityStatus.PENDING.value


def test_list_claims_reports_expiry_before_sweep(db, identity, verihubs):
    first = _kyc(db)
    second = _kyc(db)
    _backdate(db, first, seconds=1)

    assert [c.id for c in ClaimLedger.list_claims(db, identity_id=ADDRESS, status="expired")] == [first.id]
    assert [c.id for c in ClaimLedger.list_claims(db, identity_id=ADDRESS, status="active")] == [second.id]
    assert len(ClaimLedger.list_claims(db, issuer="verihubs")) == 2


def test_renew_expired_claim(db, identity, verihubs):
    claim = _kyc(db)
    _backdate(db, claim, days=2)

    renewed = ClaimLedger.renew_claim(db, claim.id)

    assert renewed.id != claim.id
    assert renewed.status == ClaimStatus.ACTIVE.value
    assert renewed.data["verification_id"] == "vh-001"
    assert ClaimLedger.get_claim(db, claim.id).status == ClaimStatus.EXPIRED.value
    assert VerificationEngine.verify_identity(db, ADDRESS).is_verified

    last = AuditService.get_trail(db, ADDRESS)[-1]
    assert last.operation == AuditOperation.CLAIM_RENEW.value
    assert last.changes["renewed_from"] == claim.id


def test_renew_non_renewable_topic(db, identity):
    TrustedIssuerDirectory.register_issuer(db, "ojk", "OJK", authorized_claims=["AUTHORIZED_SPV"])
    claim = ClaimLedger.issue_claim(db, ADDRESS, "AUTHORIZED_SPV", "ojk", {})
    with pytest.raises(InvalidStateError):
        ClaimLedger.renew_claim(db, claim.id)


def test_renew_revoked_claim(db, identity, verihubs):
    claim = _kyc(db)
    ClaimLedger.revoke_claim(db, claim.id, "fraud")
    with pytest.raises(InvalidStateError):
        ClaimLedger.renew_claim(db, claim.id)


def test_renew_requires_issuer_still_authorized(db, identity, verihubs):
    claim = _kyc(db)
    TrustedIssuerDirectory.revoke_authorization(db, "verihubs", "KYC_APPROVED")
    with pytest.raises(UnauthorizedIssuerError):
        ClaimLedger.renew_claim(db, claim.id)
    assert db.query(Claim).count() == 1


def test_issuer_revocation_leaves_claims_untouched(db, identity, verihubs):
    claim = _kyc(db)
    TrustedIssuerDirectory.set_status(db, "verihubs", IssuerStatus.REVOKED)

    assert ClaimLedger.get_claim(db, claim.id).status == ClaimStatus.ACTIVE.value
    assert VerificationEngine.verify_claim(db, claim.id).is_valid
    assert VerificationEngine.verify_identity(db, ADDRESS).is_verified


def test_batch_update_isolates_failures(db, identity, verihubs):
    first = _kyc(db)
    second = _kyc(db)
    third = _kyc(db)
    ClaimLedger.revoke_claim(db, third.id, "duplicate")

    result = ClaimLedger.batch_update(db, [
        {"claim_id": first.id, "data": {"document_types": ["passport"]}},
        {"claim_id": "claim_missing", "data": {"verification_id": "x"}},
        {"claim_id": second.id, "status": "revoked", "revocation_reason": "superseded"},
        {"claim_id": third.id, "status": "revoked", "revocation_reason": "again"},
        {"claim_id": first.id, "status": "expired"},
    ])

    assert (result.total, result.succeeded, result.failed) == (5, 2, 3)
    assert [r.success for r in result.results] == [True, False, True, False, False]
    assert [r.error_code for r in result.results if not r.success] == [
        "NOT_FOUND", "INVALID_STATE", "VALIDATION_ERROR",
    ]

    assert ClaimLedger.get_claim(db, first.id).data["document_types"] == ["passport"]
    assert ClaimLedger.get_claim(db, second.id).status == ClaimStatus.REVOKED.value
    assert ClaimLedger.get_claim(db, third.id).revocation_reason == "duplicate"


def test_batch_update_size_limit(db, monkeypatch):
    from partisipro_identity.services import claim_ledger

    monkeypatch.setattr(claim_ledger.settings, "BATCH_MAX_ITEMS", 1)
    with pytest.raises(ValidationError):
        ClaimLedger.batch_update(db, [{"claim_id": "a"}, {"claim_id": "b"}])
