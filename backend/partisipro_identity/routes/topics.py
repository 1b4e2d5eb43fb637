"""
Claim Topic Routes — administration of the claim topic catalog.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from partisipro_identity.database import get_db
from partisipro_identity.models.enums import ClaimCategory
from partisipro_identity.routes.deps import get_operator_id, get_request_info
from partisipro_identity.schemas.schemas import TopicDefineRequest, TopicResponse, TopicUpdateRequest
from partisipro_identity.services.topic_registry import ClaimTopicRegistry

router = APIRouter(prefix="/api/topics", tags=["Claim Topics"])


@router.get("", response_model=List[TopicResponse])
def list_topics(category: Optional[ClaimCategory] = None, db: Session = Depends(get_db)):
    """List the catalog, optionally filtered by category."""
    return ClaimTopicRegistry.list_topics(db, category.value if category else None)


@router.get("/required", response_model=List[str])
def list_required_topics(db: Session = Depends(get_db)):
    """Topic ids every identity must hold to be verified."""
    return ClaimTopicRegistry.list_required_topics(db)


@router.get("/{topic_id}", response_model=TopicResponse)
def get_topic(topic_id: str, db: Session = Depends(get_db)):
    return ClaimTopicRegistry.get_topic(db, topic_id)


@router.post("", response_model=TopicResponse, status_code=201)
def define_topic(
    payload: TopicDefineRequest,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Add a new claim topic."""
    return ClaimTopicRegistry.define_topic(
        db, payload.model_dump(mode="json"),
        operator_id=operator_id, request_info=request_info,
    )


@router.patch("/{topic_id}", response_model=TopicResponse)
def update_topic(
    topic_id: str,
    payload: TopicUpdateRequest,
    operator_id: str = Depends(get_operator_id),
    request_info: Dict = Depends(get_request_info),
    db: Session = Depends(get_db),
):
    """Patch topic policy. Only fields present in the body are changed."""
    return ClaimTopicRegistry.update_topic(
        db, topic_id, payload.model_dump(mode="json", exclude_unset=True),
        operator_id=operator_id, request_info=request_info,
    )
