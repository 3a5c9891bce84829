import pytest

from planledger import app_context, main


def test_app_registers_operator_routes():
    paths = {route.path for route in main.app.routes}

    assert "/api/health" in paths
    assert "/api/admin/payments/{payment_id}/verify" in paths
    assert "/api/admin/entitlements/{entitlement_id}/extend" in paths
    assert "/api/admin/reconciliation/drift" in paths


def test_connection_factory_is_registered():
    assert app_context._get_conn is main.get_conn


@pytest.mark.parametrize("raw, expected", [("5", 5), ("2.1", 3), ("0", 0)])
def test_parse_connect_timeout(raw, expected):
    assert main._parse_connect_timeout(raw) == expected


@pytest.mark.parametrize("raw", ["soon", "-1"])
def test_parse_connect_timeout_rejects_bad_values(raw):
    with pytest.raises(ValueError):
        main._parse_connect_timeout(raw)
