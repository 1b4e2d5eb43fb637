from partisipro_identity.utils.hashing import (
    generate_hash, generate_chain_hash, generate_verification_hash,
    generate_claim_id, generate_identity_key,
)
from partisipro_identity.utils.validators import validate_wallet_address, validate_topic_id
from partisipro_identity.utils.locks import KeyedLock, identity_locks

__all__ = [
    "generate_hash", "generate_chain_hash", "generate_verification_hash",
    "generate_claim_id", "generate_identity_key",
    "validate_wallet_address", "validate_topic_id",
    "KeyedLock", "identity_locks",
]
