"""
Validators — Regex and rule-based validation for identity registry inputs.
"""
import math
import re
from datetime import datetime, timezone

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_TOPIC_ID_RE = re.compile(r"^[A-Z][A-Z0-9_]{1,63}$")


def validate_wallet_address(address: str | None) -> bool:
    """EVM address: 0x followed by 40 hex characters (checksum not enforced)."""
    if not address:
        return False
    return bool(_ADDRESS_RE.match(address.strip()))


def validate_topic_id(topic_id: str | None) -> bool:
    """Topic ids are upper snake case, e.g. KYC_APPROVED."""
    if not topic_id:
        return False
    return bool(_TOPIC_ID_RE.match(topic_id))


def is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def normalize_datetime(value: datetime | None) -> datetime | None:
    """Timezone-aware inputs are converted to naive UTC, the storage convention."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def days_until(moment: datetime, now: datetime) -> int:
    """Whole days until `moment`, rounded up (0 once it has passed)."""
    seconds = (moment - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 86400)
