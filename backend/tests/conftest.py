"""
Shared fixtures: an in-memory database rebuilt (and re-seeded) for every test.

Environment is set before the application package is imported, because the
settings object and the engine are created at import time.
"""
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOG_TO_FILE"] = "false"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="identity-logs-")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from partisipro_identity.database import Base, SessionLocal, engine, init_db  # noqa: E402
from partisipro_identity.main import app  # noqa: E402
from partisipro_identity.services.identity_registry import IdentityRegistry  # noqa: E402
from partisipro_identity.services.issuer_directory import TrustedIssuerDirectory  # noqa: E402
from partisipro_identity.services.topic_registry import ClaimTopicRegistry  # noqa: E402

ADDRESS = "0x" + "ab" * 20
OTHER_ADDRESS = "0x" + "cd" * 20


@pytest.fixture(autouse=True)
def fresh_database():
    init_db()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        ClaimTopicRegistry.seed_defaults(session)
    finally:
        session.close()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def verihubs(db):
    return TrustedIssuerDirectory.register_issuer(
        db, "verihubs", "Verihubs", authorized_claims=["KYC_APPROVED", "ACCREDITED_INVESTOR"],
        metadata={"website": "https://verihubs.com"},
    )


@pytest.fixture
def identity(db):
    return IdentityRegistry.register_identity(db, ADDRESS, "u1")
