import pytest
import requests
from pywebpush import WebPushException

from pulse.db.models import PushSubscription
from pulse.services import push
from pulse.services.push import PushDeliveryError, WebPushSender


def _subscription(endpoint: str = "https://push.example.com/abc") -> PushSubscription:
    return PushSubscription(client_id="c1", endpoint=endpoint, p256dh="p256dh-key", auth="auth-key")


def _response(status_code: int) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    return response


def _sender() -> WebPushSender:
    return WebPushSender(private_key="private", public_key="public", subject="mailto:ops@test.com")


def test_send_passes_subscription_and_compact_payload(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(push, "webpush", lambda **kwargs: calls.append(kwargs))

    _sender().send(_subscription(), {"title": "Hi", "body": "There"})

    assert len(calls) == 1
    assert calls[0]["subscription_info"] == {
        "endpoint": "https://push.example.com/abc",
        "keys": {"p256dh": "p256dh-key", "auth": "auth-key"},
    }
    assert calls[0]["data"] == '{"title":"Hi","body":"There"}'
    assert calls[0]["vapid_claims"] == {"sub": "mailto:ops@test.com"}


def test_gone_status_marks_subscription_gone(monkeypatch) -> None:
    def _gone(**kwargs):
        raise WebPushException("Push failed: 410 Gone", response=_response(410))

    monkeypatch.setattr(push, "webpush", _gone)

    with pytest.raises(PushDeliveryError) as exc_info:
        _sender().send(_subscription(), {})

    assert exc_info.value.status_code == 410
    assert exc_info.value.subscription_gone is True


def test_server_error_is_transient(monkeypatch) -> None:
    def _unavailable(**kwargs):
        raise WebPushException("Push failed: 503", response=_response(503))

    monkeypatch.setattr(push, "webpush", _unavailable)

    with pytest.raises(PushDeliveryError) as exc_info:
        _sender().send(_subscription(), {})

    assert exc_info.value.subscription_gone is False


@pytest.mark.parametrize(
    "error",
    [
        requests.exceptions.ConnectTimeout("push service timed out"),
        requests.exceptions.ReadTimeout("no response"),
        requests.exceptions.ConnectionError("connection reset by peer"),
    ],
)
def test_transport_errors_become_transient_delivery_errors(monkeypatch, error) -> None:
    def _fail(**kwargs):
        raise error

    monkeypatch.setattr(push, "webpush", _fail)

    with pytest.raises(PushDeliveryError) as exc_info:
        _sender().send(_subscription(), {})

    assert exc_info.value.status_code is None
    assert exc_info.value.subscription_gone is False
    assert exc_info.value.__cause__ is error


def test_missing_vapid_keys_fail_without_calling_push_service(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(push, "webpush", lambda **kwargs: calls.append(kwargs))

    with pytest.raises(PushDeliveryError) as exc_info:
        WebPushSender(private_key="", public_key="").send(_subscription(), {})

    assert exc_info.value.status_code is None
    assert calls == []
