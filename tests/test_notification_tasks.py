import pytest

from app.core.exceptions import ExternalServiceError, ServiceUnavailableError
from app.services import email_service as email_module
from app.services.email_service import EmailService
from app.tasks import notification_tasks


class StubEmailService:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def send_verification_email(self, to, token, name):
        self.calls.append((to, token, name))
        if self.error:
            raise self.error
        return {"id": "re_123"}


def _use(monkeypatch, stub):
    monkeypatch.setattr(notification_tasks.EmailService, "from_settings", classmethod(lambda cls, s: stub))


def test_task_sends_email(monkeypatch):
    stub = StubEmailService()
    _use(monkeypatch, stub)

    result = notification_tasks.send_verification_email("ada@example.com", "tok", "Ada")

    assert result == {"status": "sent", "email": "ada@example.com", "id": "re_123"}
    assert stub.calls == [("ada@example.com", "tok", "Ada")]


@pytest.mark.parametrize(
    "error",
    [ExternalServiceError("Failed to send verification email"), ServiceUnavailableError("Email service is not configured")],
)
def test_task_reports_failure_without_raising(monkeypatch, error):
    _use(monkeypatch, StubEmailService(error))

    result = notification_tasks.send_verification_email("ada@example.com", "tok", "Ada")

    assert result["status"] == "failed"
    assert result["error"] == error.message


def test_queue_hands_off_to_worker(monkeypatch):
    queued = []

    class FakeTask:
        def delay(self, *args):
            queued.append(args)

    monkeypatch.setattr(notification_tasks, "send_verification_email", FakeTask())
    notification_tasks.queue_verification_email("ada@example.com", "tok", "Ada")
    assert queued == [("ada@example.com", "tok", "Ada")]


def test_email_service_builds_link_from_frontend_url():
    service = EmailService(api_key="", sender="Waitlist <noreply@example.com>", frontend_url="https://app.example.com/")
    assert service.verification_url("abc") == "https://app.example.com/verify-email?token=abc"
    assert service.is_configured is False
    with pytest.raises(ServiceUnavailableError):
        service.send_verification_email("ada@example.com", "abc", "Ada")


def test_email_service_wraps_provider_errors(monkeypatch):
    def boom(params):
        raise RuntimeError("provider down")

    monkeypatch.setattr(email_module.resend.Emails, "send", boom)
    service = EmailService(api_key="re_test", sender="Waitlist <noreply@example.com>", frontend_url="https://app.example.com")
    with pytest.raises(ExternalServiceError):
        service.send_verification_email("ada@example.com", "abc", "Ada")


def test_email_service_returns_receipt(monkeypatch):
    sent = []

    def fake_send(params):
        sent.append(params)
        return {"id": "re_1"}

    monkeypatch.setattr(email_module.resend.Emails, "send", fake_send)
    service = EmailService(api_key="re_test", sender="Waitlist <noreply@example.com>", frontend_url="https://app.example.com")

    assert service.send_verification_email("ada@example.com", "abc", "Ada") == {"id": "re_1"}
    assert sent[0]["to"] == ["ada@example.com"]
    assert "https://app.example.com/verify-email?token=abc" in sent[0]["html"]


def test_email_service_escapes_name(monkeypatch):
    sent = []
    monkeypatch.setattr(email_module.resend.Emails, "send", lambda params: sent.append(params) or {"id": "re_2"})
    service = EmailService(api_key="re_test", sender="Waitlist <noreply@example.com>", frontend_url="https://app.example.com")

    service.send_verification_email("ada@example.com", "abc", '<a href="https://evil.example">Ada</a>')

    assert '<a href="https://evil.example">' not in sent[0]["html"]
    assert "&lt;a href=&quot;https://evil.example&quot;&gt;Ada&lt;/a&gt;" in sent[0]["html"]


def test_task_logs_do_not_contain_plain_email(monkeypatch, caplog):
    _use(monkeypatch, StubEmailService(ExternalServiceError("Failed to send verification email")))

    with caplog.at_level("INFO", logger=notification_tasks.logger.name):
        notification_tasks.send_verification_email("ada@example.com", "tok", "Ada")

    assert caplog.records
    assert "ada@example.com" not in caplog.text
