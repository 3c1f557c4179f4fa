import pytest

from physio_funnel.errors import StorageError, ValidationError
from physio_funnel.models.lead import Lead
from physio_funnel.models.lead_event import LeadEvent
from physio_funnel.services import intake as intake_module
from physio_funnel.services.intake import LeadIntakePipeline


@pytest.fixture
def pipeline(session_factory, practices, sender, codec):
    return LeadIntakePipeline(
        session_factory,
        practices,
        sender,
        codec,
        public_base_url="https://funnel.example.com/",
    )


def test_submit_persists_lead_event_and_notifies_practice(pipeline, sender, db_session):
    result = pipeline.submit(
        {
            "fullName": "Anna de Vries",
            "email": "anna@example.com",
            "practiceCode": "PRAK01",
            "consent": True,
            "utm_campaign": "najaar",
        }
    )

    assert result.lead.id > 0
    assert result.event is not None

    event = db_session.get(LeadEvent, result.event.id)
    assert event.event_type == "lead_submitted"
    assert event.lead_id == result.lead.id
    assert event.practice_code == "PRAK01"
    assert event.actor == "system"
    assert event.meta == {"utm_campaign": "najaar"}

    assert len(sender.sent) == 1
    message = sender.sent[0]
    assert message.to_email == "praktijk@example.com"
    assert message.cc == ["backoffice@example.com"]
    assert "Anna de Vries" in message.html_body
    assert "https://funnel.example.com/lead-action?action=afspraak_gemaakt" in message.text_body
    assert f"lead_id={result.lead.id}" in message.text_body


def test_lead_without_practice_uses_unknown_code_and_sends_nothing(pipeline, sender, db_session):
    result = pipeline.submit({"volledige_naam": "Jo"})

    assert db_session.get(LeadEvent, result.event.id).practice_code == "UNKNOWN"
    assert result.notification is None
    assert sender.sent == []


def test_practice_without_email_gets_no_notification(pipeline, sender):
    result = pipeline.submit({"full_name": "Jo", "practice_code": "PRAK02"})

    assert result.event is not None
    assert result.notification is None
    assert sender.sent == []


def test_validation_reports_every_field(pipeline, db_session):
    with pytest.raises(ValidationError) as excinfo:
        pipeline.submit({"fullName": "J", "email": "not-an-email"})

    fields = {detail["field"] for detail in excinfo.value.details}
    assert fields == {"full_name", "email"}
    assert db_session.query(Lead).count() == 0


def test_event_failure_does_not_fail_submission(pipeline, sender, db_session, monkeypatch):
    def broken_record_event(*args, **kwargs):
        raise StorageError("events table locked")

    monkeypatch.setattr(intake_module, "record_event", broken_record_event)

    result = pipeline.submit({"fullName": "Anna de Vries", "practiceCode": "PRAK01"})

    assert result.event is None
    assert db_session.get(Lead, result.lead.id) is not None
    assert len(sender.sent) == 1


def test_email_failure_does_not_fail_submission(pipeline, sender, db_session):
    sender.fail = True

    result = pipeline.submit({"fullName": "Anna de Vries", "practiceCode": "PRAK01"})

    assert result.lead.id > 0
    assert result.event is not None
    assert db_session.query(LeadEvent).count() == 1
    assert sender.sent == []


def test_storage_failure_stops_before_event_and_email(pipeline, sender, db_session, monkeypatch):
    def broken_create_lead(*args, **kwargs):
        raise StorageError("Failed to store lead")

    monkeypatch.setattr(intake_module, "create_lead", broken_create_lead)

    with pytest.raises(StorageError):
        pipeline.submit({"fullName": "Anna de Vries", "practiceCode": "PRAK01"})

    assert db_session.query(LeadEvent).count() == 0
    assert sender.sent == []


def test_notification_goes_through_scheduler(session_factory, practices, sender, codec):
    scheduled = []
    pipeline = LeadIntakePipeline(
        session_factory,
        practices,
        sender,
        codec,
        public_base_url="http://localhost:5000",
        schedule=lambda func, *args: scheduled.append((func, args)),
    )

    pipeline.submit({"fullName": "Anna de Vries", "practiceCode": "PRAK01"})

    assert len(scheduled) == 1
    assert sender.sent == []
