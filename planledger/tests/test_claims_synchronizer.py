from datetime import datetime, timezone

import pytest

from planledger.app.claims import (
    SYNC_STEPS,
    ClaimsSyncStep,
    SyncStatus,
    claims_from_entitlement,
    mismatched_fields,
)
from planledger.app.entitlements import EntitlementRecord
from planledger.app.errors import AccessDenied, PartialFailure, UpstreamUnavailable, ValidationError
from planledger.app.events import EntitlementChangeKind


PREMIUM_CLAIMS = {
    "is_premium": True,
    "plan_name": "PREMIUM_MONTHLY",
    "start_date": "2024-01-15T00:00:00+00:00",
    "end_date": "2024-02-15T00:00:00+00:00",
}


def _assert_steps_partition(outcome):
    completed = set(outcome.steps_completed)
    failed = set(outcome.steps_failed)
    not_processed = set(outcome.steps_not_processed)
    assert not completed & failed
    assert not completed & not_processed
    assert not failed & not_processed
    assert outcome.steps_completed + outcome.steps_failed + outcome.steps_not_processed == list(SYNC_STEPS)


def test_set_writes_and_confirms(synchronizer, claims_service, admin_token):
    outcome = synchronizer.set(admin_token, "user-1", PREMIUM_CLAIMS)

    assert outcome.status == SyncStatus.SUCCESS
    assert outcome.steps_completed == list(SYNC_STEPS)
    assert claims_service.snapshots["user-1"]["plan_name"] == "PREMIUM_MONTHLY"
    assert claims_service.calls == ["get_claims", "set_claims", "get_claims"]
    _assert_steps_partition(outcome)


def test_set_keeps_existing_role(synchronizer, claims_service, admin_token):
    claims_service.add_user("user-3", claims={"role": "instructor"})

    synchronizer.set(admin_token, "user-3", PREMIUM_CLAIMS)

    assert claims_service.snapshots["user-3"]["role"] == "instructor"


def test_set_defaults_role_for_new_snapshot_not_operator_role(synchronizer, claims_service, admin_token):
    synchronizer.set(admin_token, "user-1", PREMIUM_CLAIMS)

    assert claims_service.snapshots["user-1"]["role"] == "user"


@pytest.mark.parametrize("operation", ["set", "update", "delete"])
def test_non_admin_cannot_write(synchronizer, claims_service, user_token, operation):
    claims_service.add_user("user-2", claims={"is_premium": False})
    before = dict(claims_service.snapshots["user-2"])
    argument = ["is_premium"] if operation == "delete" else {"is_premium": True}

    with pytest.raises(AccessDenied):
        getattr(synchronizer, operation)(user_token, "user-2", argument)

    assert claims_service.snapshots["user-2"] == before
    assert claims_service.calls == []


def test_missing_credential_is_denied(synchronizer, claims_service):
    with pytest.raises(AccessDenied) as excinfo:
        synchronizer.set("", "user-1", PREMIUM_CLAIMS)

    assert excinfo.value.payload["reason"] == "missing_credential"


def test_blank_subject_is_validation_error(synchronizer, admin_token):
    with pytest.raises(ValidationError):
        synchronizer.update(admin_token, "  ", {"is_premium": True})


def test_empty_update_is_validation_error(synchronizer, admin_token):
    with pytest.raises(ValidationError):
        synchronizer.update(admin_token, "user-1", {})


def test_fetch_failure_is_reported_as_failed(synchronizer, claims_service, admin_token):
    claims_service.fail_next("get_claims", UpstreamUnavailable("claims is unreachable", service="claims"))

    outcome = synchronizer.set(admin_token, "user-1", PREMIUM_CLAIMS)

    assert outcome.status == SyncStatus.FAILED
    assert outcome.steps_failed == [ClaimsSyncStep.FETCH_CURRENT]
    assert outcome.steps_not_processed == [ClaimsSyncStep.WRITE_CLAIMS, ClaimsSyncStep.CONFIRM_CLAIMS]
    assert outcome.errors["fetch_current"].code == "upstream_unavailable"
    _assert_steps_partition(outcome)
    with pytest.raises(UpstreamUnavailable) as excinfo:
        outcome.raise_for_status()
    assert excinfo.value.payload["outcome"]["status"] == "failed"


def test_partial_update_then_identical_retry_converges(synchronizer, claims_service, admin_token):
    claims_service.add_user("user-3", claims={"is_premium": False, "role": "user"})
    claims_service.fail_next("update_claims", UpstreamUnavailable("claims failed: HTTP 502", service="claims"))
    changes = {"is_premium": True, "plan_name": "PREMIUM_YEARLY"}

    first = synchronizer.update(admin_token, "user-3", changes)

    assert first.status == SyncStatus.PARTIAL
    assert first.steps_completed == [ClaimsSyncStep.FETCH_CURRENT]
    assert first.steps_failed == [ClaimsSyncStep.WRITE_CLAIMS]
    assert first.steps_not_processed == [ClaimsSyncStep.CONFIRM_CLAIMS]
    _assert_steps_partition(first)
    with pytest.raises(PartialFailure) as excinfo:
        first.raise_for_status()
    assert excinfo.value.status_code == 207

    second = synchronizer.update(admin_token, "user-3", changes)

    assert second.status == SyncStatus.SUCCESS
    assert claims_service.snapshots["user-3"] == {"is_premium": True, "plan_name": "PREMIUM_YEARLY", "role": "user"}

    third = synchronizer.update(admin_token, "user-3", changes)

    assert third.status == SyncStatus.SUCCESS
    assert claims_service.snapshots["user-3"] == second.claims


def test_unconfirmed_write_is_partial(synchronizer, claims_service, admin_token):
    claims_service.ignore_writes = True

    outcome = synchronizer.set(admin_token, "user-1", PREMIUM_CLAIMS)

    assert outcome.status == SyncStatus.PARTIAL
    assert outcome.steps_failed == [ClaimsSyncStep.CONFIRM_CLAIMS]
    assert outcome.errors["confirm_claims"].code == "not_converged"
    _assert_steps_partition(outcome)


def test_delete_removes_named_fields(synchronizer, claims_service, admin_token):
    claims_service.add_user("user-3", claims={**PREMIUM_CLAIMS, "role": "user"})

    outcome = synchronizer.delete(admin_token, "user-3", ["is_premium", "plan_name"])

    assert outcome.status == SyncStatus.SUCCESS
    assert "is_premium" not in claims_service.snapshots["user-3"]
    assert claims_service.snapshots["user-3"]["role"] == "user"


def test_delete_requires_fields(synchronizer, admin_token):
    with pytest.raises(ValidationError):
        synchronizer.delete(admin_token, "user-1", ["", "  "])


def test_unknown_subject_fails_at_fetch(synchronizer, admin_token):
    outcome = synchronizer.set(admin_token, "nobody", PREMIUM_CLAIMS)

    assert outcome.status == SyncStatus.FAILED
    assert outcome.errors["fetch_current"].code == "not_found"


def test_sync_entitlement_publishes_event(synchronizer, claims_service, admin_token, listener):
    record = EntitlementRecord(
        id="ent_1",
        user_id="user-1",
        user_email="learner@example.com",
        plan_name="Premium - Monthly (₹449)",
        amount=449,
        payment_reference="UTR-1001",
        start_date=datetime(2024, 1, 15, tzinfo=timezone.utc),
        expiry_date=datetime(2024, 2, 15, tzinfo=timezone.utc),
        payment_id="pay_1",
    )

    outcome = synchronizer.sync_entitlement(admin_token, record)

    assert outcome.is_complete
    assert claims_service.snapshots["user-1"] == {**PREMIUM_CLAIMS, "role": "user"}
    assert listener.events[-1].kind == EntitlementChangeKind.CLAIMS_SYNCED


def test_reads_are_admin_only(synchronizer, admin_token, user_token):
    assert synchronizer.get_claims(admin_token, email="learner@example.com").user_id == "user-1"
    assert [lookup.user_id for lookup in synchronizer.list_claims(admin_token, search="user-2")] == ["user-2"]
    with pytest.raises(AccessDenied):
        synchronizer.list_claims(user_token)


def test_claims_from_entitlement_omits_role_unless_given():
    record = EntitlementRecord(
        id="ent_1",
        user_id="user-1",
        user_email="learner@example.com",
        plan_name="AI Fundamentals (₹30000)",
        amount=30000,
        payment_reference="UTR-9",
        start_date=datetime(2024, 1, 15, tzinfo=timezone.utc),
        expiry_date=datetime(2025, 1, 15, tzinfo=timezone.utc),
        payment_id="pay_9",
    )

    claims = claims_from_entitlement(record)

    assert claims["plan_name"] == "PREMIUM_GENAI_DEV_01"
    assert "role" not in claims
    assert claims_from_entitlement(record, role="user")["role"] == "user"


def test_mismatched_fields_compares_dates_as_instants():
    expected = {"start_date": "2024-01-15T00:00:00+00:00", "is_premium": True}
    actual = {"start_date": "2024-01-15T00:00:00Z", "is_premium": False}

    assert mismatched_fields(expected, actual) == ["is_premium"]
