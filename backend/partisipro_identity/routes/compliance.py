"""
Compliance Routes — platform compliance report and per-identity checks.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from partisipro_identity.database import get_db
from partisipro_identity.schemas.schemas import ComplianceCheckResult, ComplianceReport
from partisipro_identity.services.compliance_reporter import ComplianceReporter

router = APIRouter(prefix="/api/compliance", tags=["Compliance"])


@router.get("/report", response_model=ComplianceReport)
def get_compliance_report(as_of: Optional[datetime] = None, db: Session = Depends(get_db)):
    """Aggregate identity and claim health, with score and recommendations."""
    return ComplianceReporter.generate_report(db, as_of=as_of)


@router.get("/identities/{user_address}", response_model=ComplianceCheckResult)
def check_identity(user_address: str, as_of: Optional[datetime] = None, db: Session = Depends(get_db)):
    return ComplianceReporter.check_identity(db, user_address, as_of=as_of)
