"""
Cryptographic Hashing Utilities — SHA-256 hashing for audit chains, claim
verification hashes and generated identity keys.
"""
import hashlib
import json
import uuid


def generate_hash(data: dict) -> str:
    """SHA-256 of a dictionary (deterministic, sorted keys, dates stringified)."""
    canonical = json.dumps(data, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(canonical).hexdigest()


def generate_chain_hash(current_data: dict, previous_hash: str = "") -> str:
    """SHA-256(previous_hash + hash(current_data)), linking audit entries."""
    current_hash = generate_hash(current_data)
    chain_input = f"{previous_hash}{current_hash}".encode("utf-8")
    return hashlib.sha256(chain_input).hexdigest()


def generate_verification_hash(claim_payload: dict) -> str:
    """0x-prefixed digest of a claim's canonical payload, used as on-chain linkage."""
    return "0x" + generate_hash(claim_payload)


def generate_claim_id() -> str:
    return f"claim_{uuid.uuid4().hex}"


def generate_identity_key(user_address: str, user_id: str) -> str:
    """Placeholder on-chain identity key until the registry contract assigns one."""
    digest = hashlib.sha256(f"{user_address.lower()}:{user_id}".encode("utf-8")).hexdigest()
    return f"0x{digest[:40]}"
