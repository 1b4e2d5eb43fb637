"""
Claim Topic Registry — the authoritative catalog of claim topics and their
policy (required / category / default expiry / renewable).
Topics are administered here and nowhere else; they are never deleted.
"""
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from partisipro_identity.errors import NotFoundError, ValidationError
from partisipro_identity.logger import get_logger
from partisipro_identity.models.enums import AuditOperation, ClaimCategory, ClaimTopic
from partisipro_identity.models.topic import ClaimTopicDefinition
from partisipro_identity.services.audit_service import AuditService, topic_subject
from partisipro_identity.utils.validators import validate_topic_id, is_blank

logger = get_logger(__name__)

DEFAULT_TOPICS = [
    {
        "id": ClaimTopic.KYC_APPROVED.value,
        "name": "KYC Approved",
        "description": "Identity documents verified by a licensed KYC provider",
        "required": True,
        "category": ClaimCategory.KYC.value,
        "default_expiry_days": 365,
        "renewable": True,
    },
    {
        "id": ClaimTopic.ACCREDITED_INVESTOR.value,
        "name": "Accredited Investor",
        "description": "Investor meets accreditation thresholds for restricted offerings",
        "required": False,
        "category": ClaimCategory.ACCREDITATION.value,
        "default_expiry_days": 365,
        "renewable": True,
    },
    {
        "id": ClaimTopic.AUTHORIZED_SPV.value,
        "name": "Authorized SPV",
        "description": "Special purpose vehicle authorized to list PPP projects",
        "required": False,
        "category": ClaimCategory.COMPLIANCE.value,
        "default_expiry_days": None,
        "renewable": False,
    },
    {
        "id": ClaimTopic.GOVERNANCE_ELIGIBLE.value,
        "name": "Governance Eligible",
        "description": "Holder may take part in project governance votes",
        "required": False,
        "category": ClaimCategory.GOVERNANCE.value,
        "default_expiry_days": 180,
        "renewable": True,
    },
    {
        "id": ClaimTopic.INSTITUTIONAL_INVESTOR.value,
        "name": "Institutional Investor",
        "description": "Regulated institution investing on its own account",
        "required": False,
        "category": ClaimCategory.ACCREDITATION.value,
        "default_expiry_days": 730,
        "renewable": True,
    },
]

_PATCHABLE = ("name", "description", "required", "category", "default_expiry_days", "renewable")


class ClaimTopicRegistry:
    """Read-mostly reference data; administrative writes only."""

    @staticmethod
    def define_topic(
        db: Session,
        definition: Dict,
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> ClaimTopicDefinition:
        """Add a topic to the catalog.

        Raises:
            ValidationError: id malformed or already defined, or a required field missing.
        """
        topic_id = definition.get("id")
        if not validate_topic_id(topic_id):
            raise ValidationError(f"Invalid topic id: {topic_id!r} (expected UPPER_SNAKE_CASE)")
        if is_blank(definition.get("name")):
            raise ValidationError("Topic name is required")
        category = _parse_category(definition.get("category"))
        expiry = _parse_expiry(definition.get("default_expiry_days"))

        if db.get(ClaimTopicDefinition, topic_id) is not None:
            raise ValidationError(f"Claim topic already defined: {topic_id}")

        now = datetime.utcnow()
        topic = ClaimTopicDefinition(
            id=topic_id,
            name=definition["name"].strip(),
            description=definition.get("description") or "",
            required=bool(definition.get("required", False)),
            category=category,
            default_expiry_days=expiry,
            renewable=bool(definition.get("renewable", False)),
            created_at=now,
            updated_at=now,
        )
        db.add(topic)
        AuditService.log(
            db, topic_subject(topic_id), AuditOperation.TOPIC_DEFINE,
            operator_id=operator_id,
            changes={k: getattr(topic, k) for k in _PATCHABLE},
            request_info=request_info,
        )
        db.commit()
        db.refresh(topic)

        logger.info(f"Claim topic {topic_id} defined (required={topic.required})")
        return topic

    @staticmethod
    def get_topic(db: Session, topic_id: str) -> ClaimTopicDefinition:
        topic = db.get(ClaimTopicDefinition, topic_id)
        if topic is None:
            raise NotFoundError(f"Claim topic not found: {topic_id}")
        return topic

    @staticmethod
    def list_topics(db: Session, category: Optional[str] = None) -> List[ClaimTopicDefinition]:
        query = db.query(ClaimTopicDefinition).order_by(ClaimTopicDefinition.id.asc())
        if category:
            query = query.filter(ClaimTopicDefinition.category == category)
        return query.all()

    @staticmethod
    def list_required_topics(db: Session) -> List[str]:
        """Ids of all required topics: the default compliance baseline."""
        rows = (
            db.query(ClaimTopicDefinition.id)
            .filter(ClaimTopicDefinition.required.is_(True))
            .order_by(ClaimTopicDefinition.id.asc())
            .all()
        )
        return [r[0] for r in rows]

    @staticmethod
    def update_topic(
        db: Session,
        topic_id: str,
        patch: Dict,
        operator_id: Optional[str] = None,
        request_info: Optional[Dict] = None,
    ) -> ClaimTopicDefinition:
        """Patch a topic's policy. Claims already issued keep their expiry."""
        topic = ClaimTopicRegistry.get_topic(db, topic_id)

        if "id" in patch and patch["id"] != topic_id:
            raise ValidationError("Topic id is immutable")

        changes = {}
        for field in _PATCHABLE:
            if field not in patch:
                continue
            value = patch[field]
            # An explicit None only means something for expiry: never expire
            if value is None and field != "default_expiry_days":
                continue
            if field == "name" and is_blank(value):
                raise ValidationError("Topic name cannot be blank")
            if field == "category":
                value = _parse_category(value)
            if field == "default_expiry_days":
                value = _parse_expiry(value)
            if getattr(topic, field) != value:
                changes[field] = {"old": getattr(topic, field), "new": value}

        if not changes:
            return topic

        for field, change in changes.items():
            setattr(topic, field, change["new"])
        topic.updated_at = datetime.utcnow()
        AuditService.log(
            db, topic_subject(topic_id), AuditOperation.TOPIC_UPDATE,
            operator_id=operator_id, changes=changes, request_info=request_info,
        )
        db.commit()
        db.refresh(topic)

        logger.info(f"Claim topic {topic_id} updated: {sorted(changes)}")
        return topic

    @staticmethod
    def seed_defaults(db: Session) -> int:
        """Insert any missing built-in topics. Existing rows are left untouched."""
        created = 0
        now = datetime.utcnow()
        for definition in DEFAULT_TOPICS:
            if db.get(ClaimTopicDefinition, definition["id"]) is not None:
                continue
            db.add(ClaimTopicDefinition(created_at=now, updated_at=now, **definition))
            created += 1
        if created:
            db.commit()
            logger.info(f"Seeded {created} default claim topics")
        return created


def _parse_category(value) -> str:
    try:
        return ClaimCategory(value).value
    except ValueError:
        allowed = ", ".join(c.value for c in ClaimCategory)
        raise ValidationError(f"Invalid topic category: {value!r} (allowed: {allowed})")


def _parse_expiry(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError("default_expiry_days must be a positive integer")
    return value
