import pytest

from planledger.app.config import AdminGuardMode, load_engine_config


def test_defaults():
    config = load_engine_config({})

    assert config.admin_guard_mode == AdminGuardMode.ROLE
    assert config.admin_role == "admin"
    assert config.upstream_timeout_seconds == 10.0
    assert config.claims_api_base_url == "http://localhost:8081"
    assert config.auto_sync_claims is True
    assert config.send_invoices is False
    assert config.storage_backend == "postgres"


def test_environment_overrides():
    config = load_engine_config(
        {
            "ADMIN_GUARD_MODE": "Authenticated",
            "UPSTREAM_TIMEOUT_SECONDS": "2.5",
            "CLAIMS_API_BASE_URL": "https://claims.example.com/",
            "AUTO_SYNC_CLAIMS": "off",
            "SEND_INVOICES": "yes",
            "INVOICE_API_URL": "https://invoices.example.com/send",
            "STORAGE_BACKEND": "memory",
        }
    )

    assert config.admin_guard_mode == AdminGuardMode.AUTHENTICATED
    assert config.upstream_timeout_seconds == 2.5
    assert config.claims_api_base_url == "https://claims.example.com"
    assert config.auto_sync_claims is False
    assert config.send_invoices is True
    assert config.invoice_api_url == "https://invoices.example.com/send"
    assert config.storage_backend == "memory"


@pytest.mark.parametrize(
    "env",
    [
        {"ADMIN_GUARD_MODE": "everyone"},
        {"UPSTREAM_TIMEOUT_SECONDS": "0"},
        {"UPSTREAM_TIMEOUT_SECONDS": "soon"},
        {"STORAGE_BACKEND": "sqlite"},
    ],
)
def test_invalid_values_are_rejected(env):
    with pytest.raises(ValueError):
        load_engine_config(env)


def test_unrecognised_booleans_fall_back_to_default():
    assert load_engine_config({"AUTO_SYNC_CLAIMS": "maybe"}).auto_sync_claims is True
