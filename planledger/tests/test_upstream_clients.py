import http.client
import json
import socket
from typing import Any, Dict, List, Optional, Tuple

import pytest

from planledger.app.claims import ClaimsSyncStep, ClaimsSynchronizer, HttpClaimsService, SyncStatus
from planledger.app.errors import AccessDenied, NotFound, UpstreamUnavailable, ValidationError
from planledger.app.invoices import HttpInvoiceSender, InvoiceRequest
from planledger.app.orchestration import HttpPaymentOrchestrator


class FakeTransport:
    def __init__(self, responses: Optional[List[Tuple[int, Any]]] = None, error: Optional[Exception] = None) -> None:
        self.responses = list(responses or [])
        self.error = error
        self.requests: List[Dict[str, Any]] = []

    def __call__(self, method, url, headers, body, timeout):
        self.requests.append(
            {
                "method": method,
                "url": url,
                "headers": dict(headers),
                "body": json.loads(body) if body else None,
                "timeout": timeout,
            }
        )
        if self.error is not None:
            raise self.error
        status, payload = self.responses.pop(0)
        raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
        return status, raw


def _claims_client(transport):
    return HttpClaimsService(base_url="http://claims.local/", timeout=2.5, transport=transport)


def test_get_claims_by_user_id_sends_bearer_and_timeout():
    transport = FakeTransport([(200, {"user_id": "user-1", "email": "a@example.com", "custom_claims": {"role": "user"}})])

    lookup = _claims_client(transport).get_claims("token-123", user_id="user-1")

    request = transport.requests[0]
    assert request["method"] == "GET"
    assert request["url"] == "http://claims.local/get-custom-claims?user_id=user-1"
    assert request["headers"]["Authorization"] == "Bearer token-123"
    assert request["timeout"] == 2.5
    assert lookup.snapshot.role == "user"


def test_get_claims_by_email():
    transport = FakeTransport([(200, {"user_id": "user-1", "custom_claims": {}})])

    _claims_client(transport).get_claims("token", email="a@example.com")

    assert transport.requests[0]["url"] == "http://claims.local/get-custom-claims?email=a%40example.com"


@pytest.mark.parametrize("kwargs", [{}, {"user_id": "u", "email": "e@example.com"}])
def test_get_claims_requires_exactly_one_key(kwargs):
    with pytest.raises(ValueError):
        _claims_client(FakeTransport()).get_claims("token", **kwargs)


def test_list_claims_uses_search_parameter():
    transport = FakeTransport([(200, {"users": [{"user_id": "user-1", "custom_claims": {"is_premium": True}}, "junk"]})])

    users = _claims_client(transport).list_claims("token", search="user-1")

    assert transport.requests[0]["url"] == "http://claims.local/get-all-custom-claims?user-id=user-1"
    assert [user.user_id for user in users] == ["user-1"]


def test_write_endpoints_and_bodies():
    transport = FakeTransport(
        [
            (200, {"custom_claims": {"is_premium": True}}),
            (200, {"custom_claims": {"is_premium": True, "role": "user"}}),
            (200, {"custom_claims": {}}),
        ]
    )
    client = _claims_client(transport)

    client.set_claims("token", "user-1", {"is_premium": True})
    client.update_claims("token", "user-1", {"role": "user"})
    client.delete_claims("token", "user-1", ["is_premium", "role"])

    assert [(r["method"], r["url"]) for r in transport.requests] == [
        ("POST", "http://claims.local/set-custom-claims"),
        ("PUT", "http://claims.local/update-custom-claims"),
        ("DELETE", "http://claims.local/delete-custom-claims"),
    ]
    assert transport.requests[0]["body"] == {"user_id": "user-1", "custom_claims": {"is_premium": True}}
    assert transport.requests[2]["body"] == {"user_id": "user-1", "fields_to_delete": ["is_premium", "role"]}


@pytest.mark.parametrize(
    "status, error",
    [
        (401, AccessDenied),
        (403, AccessDenied),
        (404, NotFound),
        (400, ValidationError),
        (408, UpstreamUnavailable),
        (429, UpstreamUnavailable),
        (500, UpstreamUnavailable),
        (503, UpstreamUnavailable),
    ],
)
def test_error_statuses_are_mapped(status, error):
    transport = FakeTransport([(status, {"message": "nope"})])

    with pytest.raises(error) as excinfo:
        _claims_client(transport).set_claims("token", "user-1", {"is_premium": True})

    assert excinfo.value.detail["upstream_status"] == status
    assert "nope" in excinfo.value.message


def test_timeout_is_upstream_unavailable():
    transport = FakeTransport(error=socket.timeout("timed out"))

    with pytest.raises(UpstreamUnavailable) as excinfo:
        _claims_client(transport).get_claims("token", user_id="user-1")

    assert excinfo.value.service == "claims"


@pytest.mark.parametrize(
    "error", [http.client.BadStatusLine("garbage"), http.client.IncompleteRead(b"{\"user")]
)
def test_broken_http_response_is_upstream_unavailable(error):
    with pytest.raises(UpstreamUnavailable) as excinfo:
        _claims_client(FakeTransport(error=error)).get_claims("token", user_id="user-1")

    assert excinfo.value.service == "claims"


class BrokenWriteTransport(FakeTransport):
    def __call__(self, method, url, headers, body, timeout):
        if method != "GET":
            raise http.client.BadStatusLine("garbage")
        return super().__call__(method, url, headers, body, timeout)


def test_broken_write_response_keeps_step_report(guard, admin_token):
    transport = BrokenWriteTransport([(200, {"user_id": "user-1", "custom_claims": {"role": "user"}})])
    synchronizer = ClaimsSynchronizer(service=_claims_client(transport), guard=guard)

    outcome = synchronizer.set(admin_token, "user-1", {"is_premium": True})

    assert outcome.status == SyncStatus.PARTIAL
    assert outcome.steps_completed == [ClaimsSyncStep.FETCH_CURRENT]
    assert outcome.steps_failed == [ClaimsSyncStep.WRITE_CLAIMS]
    assert outcome.errors["write_claims"].code == "upstream_unavailable"


def test_malformed_success_body_is_upstream_unavailable():
    transport = FakeTransport([(200, b"<html>gateway</html>")])

    with pytest.raises(UpstreamUnavailable):
        _claims_client(transport).get_claims("token", user_id="user-1")


def test_malformed_error_body_still_maps_status():
    transport = FakeTransport([(502, b"Bad Gateway")])

    with pytest.raises(UpstreamUnavailable) as excinfo:
        _claims_client(transport).get_claims("token", user_id="user-1")

    assert "HTTP 502" in excinfo.value.message


def test_process_payment_passes_step_report_through():
    transport = FakeTransport(
        [
            (
                207,
                {
                    "status": "partial",
                    "message": "claims not updated",
                    "custom_claims": {"is_premium": True},
                    "steps_completed": ["update_payment"],
                    "steps_failed": ["set_claims"],
                    "steps_not_processed": ["send_invoice"],
                },
            )
        ]
    )
    orchestrator = HttpPaymentOrchestrator(base_url="http://orch.local", timeout=5, transport=transport)

    result = orchestrator.process_payment("token", payment_id="pay_1", user_id="user-1", plan_name="Premium")

    assert transport.requests[0]["url"] == "http://orch.local/process-payment"
    assert transport.requests[0]["body"] == {"payment_id": "pay_1", "user_id": "user-1", "plan_name": "Premium"}
    assert result.is_partial
    assert result.steps_failed == ["set_claims"]
    assert result.claims == {"is_premium": True}
    assert result.payment_id == "pay_1"


def test_invoice_sender_posts_to_base_url():
    transport = FakeTransport([(200, {"invoice_id": "inv-9"})])
    sender = HttpInvoiceSender(base_url="http://invoices.local/send", timeout=3, transport=transport)
    invoice = InvoiceRequest(name="learner", email="learner@example.com", amount=449, plan_name="Premium", payment_id="UTR-1")

    assert sender.send_invoice("token", invoice) == "inv-9"
    assert transport.requests[0]["url"] == "http://invoices.local/send"
    assert transport.requests[0]["body"]["email"] == "learner@example.com"
