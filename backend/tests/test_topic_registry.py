import pytest

from partisipro_identity.errors import NotFoundError, ValidationError
from partisipro_identity.models.enums import AuditOperation
from partisipro_identity.services.audit_service import AuditService, topic_subject
from partisipro_identity.services.topic_registry import ClaimTopicRegistry, DEFAULT_TOPICS


def test_default_catalog_is_seeded(db):
    topics = ClaimTopicRegistry.list_topics(db)
    assert {t.id for t in topics} == {d["id"] for d in DEFAULT_TOPICS}
    assert ClaimTopicRegistry.list_required_topics(db) == ["KYC_APPROVED"]


def test_seed_is_idempotent(db):
    assert ClaimTopicRegistry.seed_defaults(db) == 0


def test_define_topic(db):
    topic = ClaimTopicRegistry.define_topic(db, {
        "id": "AML_SCREENED",
        "name": "AML Screened",
        "category": "compliance",
        "required": True,
        "default_expiry_days": 90,
        "renewable": True,
    }, operator_id="admin-1")

    assert topic.id == "AML_SCREENED"
    assert topic.default_expiry_days == 90
    assert ClaimTopicRegistry.list_required_topics(db) == ["AML_SCREENED", "KYC_APPROVED"]

    trail = AuditService.get_trail(db, topic_subject("AML_SCREENED"))
    assert [e.operation for e in trail] == [AuditOperation.TOPIC_DEFINE.value]
    assert trail[0].operator_id == "admin-1"


def test_define_duplicate_topic_fails(db):
    with pytest.raises(ValidationError):
        ClaimTopicRegistry.define_topic(db, {"id": "KYC_APPROVED", "name": "Again", "category": "kyc"})


@pytest.mark.parametrize("definition", [
    {"id": "lowercase", "name": "Bad", "category": "kyc"},
    {"id": "NO_NAME", "name": "  ", "category": "kyc"},
    {"id": "BAD_CATEGORY", "name": "Bad", "category": "marketing"},
    {"id": "BAD_EXPIRY", "name": "Bad", "category": "kyc", "default_expiry_days": 0},
])
def test_define_topic_rejects_invalid_definitions(db, definition):
    with pytest.raises(ValidationError):
        ClaimTopicRegistry.define_topic(db, definition)


def test_get_unknown_topic(db):
    with pytest.raises(NotFoundError):
        ClaimTopicRegistry.get_topic(db, "NOPE")


def test_list_topics_by_category(db):
    ids = [t.id for t in ClaimTopicRegistry.list_topics(db, "governance")]
    assert ids == ["GOVERNANCE_ELIGIBLE"]


def test_update_topic(db):
    topic = ClaimTopicRegistry.update_topic(db, "ACCREDITED_INVESTOR", {"required": True, "default_expiry_days": 180})
    assert topic.required is True
    assert topic.default_expiry_days == 180
    assert "ACCREDITED_INVESTOR" in ClaimTopicRegistry.list_required_topics(db)

    ops = [e.operation for e in AuditService.get_trail(db, topic_subject("ACCREDITED_INVESTOR"))]
    assert ops == [AuditOperation.TOPIC_UPDATE.value]


def test_update_topic_can_clear_expiry(db):
    topic = ClaimTopicRegistry.update_topic(db, "KYC_APPROVED", {"default_expiry_days": None})
    assert topic.default_expiry_days is None


def test_update_topic_id_is_immutable(db):
    with pytest.raises(ValidationError):
        ClaimTopicRegistry.update_topic(db, "KYC_APPROVED", {"id": "KYC_OK"})


def test_invalid_update_leaves_topic_unchanged(db):
    with pytest.raises(ValidationError):
        ClaimTopicRegistry.update_topic(db, "KYC_APPROVED", {"required": False, "name": " "})
    db.expire_all()
    assert ClaimTopicRegistry.get_topic(db, "KYC_APPROVED").required is True


def test_noop_update_is_not_audited(db):
    ClaimTopicRegistry.update_topic(db, "KYC_APPROVED", {"required": True})
    assert AuditService.get_trail(db, topic_subject("KYC_APPROVED")) == []
