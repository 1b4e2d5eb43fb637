"""
Shared route dependencies — operator identity and request metadata for audit entries.
"""
from typing import Dict, Optional

from fastapi import Header, Request

from partisipro_identity.config import get_settings

settings = get_settings()


def get_operator_id(operator_id: Optional[str] = Header(None, alias="operator-id")) -> str:
    """Operator recorded in the audit trail; falls back to the system operator."""
    return operator_id or settings.SYSTEM_OPERATOR_ID


def get_request_info(request: Request) -> Dict[str, Optional[str]]:
    return {
        "ip": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent", "")[:256],
    }
