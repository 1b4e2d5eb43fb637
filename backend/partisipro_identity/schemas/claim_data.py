"""
Claim Payload Schemas — topic-specific validation of the opaque claim `data`.

Each built-in topic has a model listing the fields it understands; unknown
keys are kept. Topics defined later by an administrator have no schema and
accept any JSON object.
"""
from typing import Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from partisipro_identity.errors import ValidationError
from partisipro_identity.models.enums import ClaimTopic


class _ClaimPayload(BaseModel):
    class Config:
        extra = "allow"


class KYCApprovedData(_ClaimPayload):
    verification_id: Optional[str] = None
    verification_level: Literal["basic", "enhanced", "full"] = "basic"
    document_types: List[str] = []


class AccreditedInvestorData(_ClaimPayload):
    accreditation_type: Optional[str] = None
    jurisdiction: Optional[str] = None


class AuthorizedSPVData(_ClaimPayload):
    spv_name: Optional[str] = None
    registration_number: Optional[str] = None


class GovernanceEligibleData(_ClaimPayload):
    project_id: Optional[str] = None
    voting_weight: float = Field(1.0, ge=0)


class InstitutionalInvestorData(_ClaimPayload):
    institution_name: Optional[str] = None
    license_number: Optional[str] = None


CLAIM_DATA_SCHEMAS: Dict[str, Type[_ClaimPayload]] = {
    ClaimTopic.KYC_APPROVED.value: KYCApprovedData,
    ClaimTopic.ACCREDITED_INVESTOR.value: AccreditedInvestorData,
    ClaimTopic.AUTHORIZED_SPV.value: AuthorizedSPVData,
    ClaimTopic.GOVERNANCE_ELIGIBLE.value: GovernanceEligibleData,
    ClaimTopic.INSTITUTIONAL_INVESTOR.value: InstitutionalInvestorData,
}


def validate_claim_data(topic_id: str, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate `data` against the topic's schema and return the normalized payload.

    Raises:
        ValidationError: naming the first violated field.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Claim data must be a JSON object")

    schema = CLAIM_DATA_SCHEMAS.get(topic_id)
    if schema is None:
        return dict(data)

    try:
        payload = schema(**data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first["loc"]) or "data"
        raise ValidationError(f"Invalid {topic_id} claim data: {field}: {first['msg']}")

    # Schema defaults are filled in, extra keys survive
    return payload.model_dump(mode="json")
