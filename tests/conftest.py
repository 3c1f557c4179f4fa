import os

# Must be set before physio_funnel is imported: the engine and settings are
# built at import time.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("ADMIN_KEY", None)
os.environ.pop("SENDGRID_API_KEY", None)
os.environ.setdefault("ACTION_TOKEN_SECRET", "test-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from physio_funnel.db import Base, SessionLocal, engine  # noqa: E402
from physio_funnel.email.service import EmailSender, get_email_sender  # noqa: E402
from physio_funnel.errors import DeliveryError  # noqa: E402
from physio_funnel.main import app  # noqa: E402
from physio_funnel.services.action_tokens import ActionTokenCodec, get_token_codec  # noqa: E402
from physio_funnel.services.practices import (  # noqa: E402
    PracticeInfo,
    StaticPracticeDirectory,
    get_practice_directory,
)

TEST_SECRET = "test-secret"

PRACTICES = {
    "PRAK01": PracticeInfo(
        code="PRAK01",
        name="Fysio Centrum Utrecht",
        email_to="praktijk@example.com",
        email_cc="backoffice@example.com",
    ),
    "PRAK02": PracticeInfo(code="PRAK02", name="Fysio Zonder Mail"),
}


class RecordingEmailSender(EmailSender):
    """Keeps every message; optionally fails like a broken transport."""

    def __init__(self) -> None:
        self.sent = []
        self.fail = False

    def send(self, message) -> None:
        if self.fail:
            raise DeliveryError("transport down")
        self.sent.append(message)


@pytest.fixture(autouse=True)
def _schema():
    import physio_funnel.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def session_factory():
    return SessionLocal


@pytest.fixture
def sender():
    return RecordingEmailSender()


@pytest.fixture
def practices():
    return StaticPracticeDirectory(PRACTICES)


@pytest.fixture
def codec():
    return ActionTokenCodec(TEST_SECRET)


@pytest.fixture
def strict_codec():
    return ActionTokenCodec(TEST_SECRET, strict=True)


@pytest.fixture
def client(sender, practices, codec):
    app.dependency_overrides[get_email_sender] = lambda: sender
    app.dependency_overrides[get_practice_directory] = lambda: practices
    app.dependency_overrides[get_token_codec] = lambda: codec
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
