import pytest

from physio_funnel.errors import ValidationError
from physio_funnel.main import app
from physio_funnel.models.lead_event import LeadEvent
from physio_funnel.models.practice import Practice
from physio_funnel.services.intake import LeadIntakePipeline
from physio_funnel.services.practices import (
    SqlPracticeDirectory,
    get_practice_directory,
    normalize_practice_code,
)


@pytest.fixture
def practice_rows(db_session):
    db_session.add_all(
        [
            Practice(
                code="PRAK01",
                name="Fysio Centrum Utrecht",
                email_to="praktijk@example.com",
                email_cc="backoffice@example.com",
                active=True,
            ),
            Practice(
                code="PRAK03",
                name="Fysio Gesloten",
                email_to="gesloten@example.com",
                active=False,
            ),
            Practice(code="PRAK04", name="Fysio Zonder Mail", active=True),
        ]
    )
    db_session.commit()


@pytest.fixture
def directory(session_factory, practice_rows):
    return SqlPracticeDirectory(session_factory)


def test_directory_reads_practice_rows(directory):
    practice = directory.get("PRAK01")

    assert practice.code == "PRAK01"
    assert practice.name == "Fysio Centrum Utrecht"
    assert practice.email_to == "praktijk@example.com"
    assert practice.email_cc == "backoffice@example.com"
    assert practice.notifiable


def test_inactive_practice_is_not_notifiable(directory):
    practice = directory.get("PRAK03")

    assert practice is not None
    assert practice.active is False
    assert not practice.notifiable


def test_practice_without_email_is_not_notifiable(directory):
    assert not directory.get("PRAK04").notifiable


def test_unknown_code_returns_none(directory):
    assert directory.get("NOPE") is None


@pytest.mark.parametrize(
    "code, notified",
    [("PRAK01", True), ("PRAK03", False), ("PRAK04", False), ("NOPE", False)],
)
def test_intake_notifies_only_active_practices_with_email(
    directory, session_factory, sender, codec, db_session, code, notified
):
    pipeline = LeadIntakePipeline(
        session_factory,
        directory,
        sender,
        codec,
        public_base_url="http://localhost:5000",
    )

    result = pipeline.submit({"fullName": "Anna de Vries", "practiceCode": code})

    assert db_session.get(LeadEvent, result.event.id).practice_code == code
    assert (result.notification is not None) is notified
    assert len(sender.sent) == (1 if notified else 0)


def test_lead_route_uses_practices_table(client, sender, practice_rows):
    app.dependency_overrides.pop(get_practice_directory, None)

    active = client.post("/leads", json={"fullName": "Anna de Vries", "practiceCode": "PRAK01"})
    inactive = client.post("/leads", json={"fullName": "Piet Jansen", "practiceCode": "PRAK03"})

    assert active.status_code == 201
    assert inactive.status_code == 201
    assert [message.to_email for message in sender.sent] == ["praktijk@example.com"]


@pytest.mark.parametrize("value", [None, "", "  ", "a" * 65, "PRAK/01"])
def test_normalize_rejects_bad_codes(value):
    with pytest.raises(ValidationError):
        normalize_practice_code(value)


def test_normalize_strips_whitespace():
    assert normalize_practice_code("  PRAK01 ") == "PRAK01"
