"""Unit tests for WithdrawalsConfig and ClientConfig."""

import pytest
from pydantic import ValidationError

from idempotent_withdrawals.config import ClientConfig, WithdrawalsConfig


class TestWithdrawalsConfigDefaults:
    def test_defaults(self):
        config = WithdrawalsConfig()
        assert config.route_prefix == ""
        assert config.max_key_length == 255
        assert config.idempotency_ttl_seconds is None
        assert config.cleanup_interval_seconds == 300
        assert config.dangling_key_policy == "recreate"
        assert config.log_level == "INFO"
        assert config.json_logs is True


class TestRoutePrefix:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("", ""), ("/", ""), ("api", "/api"), ("/api/v1/", "/api/v1"), ("  v1 ", "/v1")],
    )
    def test_normalized(self, raw, expected):
        assert WithdrawalsConfig(route_prefix=raw).route_prefix == expected
        assert ClientConfig(route_prefix=raw).route_prefix == expected


class TestWithdrawalsConfigValidation:
    @pytest.mark.parametrize("value", [0, 1025, -1])
    def test_max_key_length_bounds(self, value):
        with pytest.raises(ValidationError, match="max_key_length"):
            WithdrawalsConfig(max_key_length=value)

    @pytest.mark.parametrize("value", [1, 1024])
    def test_max_key_length_edges_accepted(self, value):
        assert WithdrawalsConfig(max_key_length=value).max_key_length == value

    @pytest.mark.parametrize("value", [0, 31536001])
    def test_ttl_bounds(self, value):
        with pytest.raises(ValidationError, match="idempotency_ttl_seconds"):
            WithdrawalsConfig(idempotency_ttl_seconds=value)

    def test_ttl_accepts_none_and_range(self):
        assert WithdrawalsConfig(idempotency_ttl_seconds=None).idempotency_ttl_seconds is None
        assert WithdrawalsConfig(idempotency_ttl_seconds=60).idempotency_ttl_seconds == 60

    @pytest.mark.parametrize("value", [0, 86401])
    def test_cleanup_interval_bounds(self, value):
        with pytest.raises(ValidationError, match="cleanup_interval_seconds"):
            WithdrawalsConfig(cleanup_interval_seconds=value)

    def test_dangling_key_policy_values(self):
        assert WithdrawalsConfig(dangling_key_policy="reject").dangling_key_policy == "reject"
        with pytest.raises(ValidationError):
            WithdrawalsConfig(dangling_key_policy="ignore")  # type: ignore[arg-type]

    def test_log_level_normalized(self):
        assert WithdrawalsConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError, match="Invalid log level"):
            WithdrawalsConfig(log_level="LOUD")

    def test_immutable(self):
        config = WithdrawalsConfig()
        with pytest.raises(ValidationError):
            config.max_key_length = 10  # type: ignore[misc]


class TestWithdrawalsConfigFromEnv:
    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("WITHDRAWALS_ROUTE_PREFIX", "/api/v1")
        monkeypatch.setenv("WITHDRAWALS_IDEMPOTENCY_TTL_SECONDS", "3600")
        monkeypatch.setenv("WITHDRAWALS_DANGLING_KEY_POLICY", "reject")
        monkeypatch.setenv("WITHDRAWALS_JSON_LOGS", "false")

        config = WithdrawalsConfig.from_env()

        assert config.route_prefix == "/api/v1"
        assert config.idempotency_ttl_seconds == 3600
        assert config.dangling_key_policy == "reject"
        assert config.json_logs is False

    def test_missing_variables_keep_defaults(self, monkeypatch):
        monkeypatch.delenv("WITHDRAWALS_MAX_KEY_LENGTH", raising=False)
        assert WithdrawalsConfig.from_env().max_key_length == 255

    def test_empty_optional_is_none(self, monkeypatch):
        monkeypatch.setenv("WITHDRAWALS_IDEMPOTENCY_TTL_SECONDS", "")
        assert WithdrawalsConfig.from_env().idempotency_ttl_seconds is None

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("APP_MAX_KEY_LENGTH", "64")
        assert WithdrawalsConfig.from_env(prefix="APP_").max_key_length == 64

    def test_invalid_value_raises(self, monkeypatch):
        monkeypatch.setenv("WITHDRAWALS_MAX_KEY_LENGTH", "0")
        with pytest.raises(ValidationError):
            WithdrawalsConfig.from_env()


class TestWithdrawalsConfigFromDict:
    def test_from_dict(self):
        config = WithdrawalsConfig.from_dict({"max_key_length": 32, "log_level": "warning"})
        assert config.max_key_length == 32
        assert config.log_level == "WARNING"


class TestClientConfig:
    def test_defaults(self):
        config = ClientConfig()
        assert config.base_url == "http://localhost:8000"
        assert config.request_timeout_seconds == 10.0
        assert config.snapshot_slot == "withdraw:last"
        assert config.snapshot_ttl_seconds == 300
        assert config.snapshot_dir is None

    def test_base_url_trailing_slash_stripped(self):
        assert ClientConfig(base_url="https://api.example.com/").base_url == (
            "https://api.example.com"
        )

    def test_base_url_requires_http_scheme(self):
        with pytest.raises(ValidationError, match="base_url"):
            ClientConfig(base_url="ftp://example.com")

    @pytest.mark.parametrize("value", [0, -1.5])
    def test_timeout_must_be_positive(self, value):
        with pytest.raises(ValidationError, match="request_timeout_seconds"):
            ClientConfig(request_timeout_seconds=value)

    @pytest.mark.parametrize("value", [0, 86401])
    def test_snapshot_ttl_bounds(self, value):
        with pytest.raises(ValidationError, match="snapshot_ttl_seconds"):
            ClientConfig(snapshot_ttl_seconds=value)

    def test_empty_slot_rejected(self):
        with pytest.raises(ValidationError):
            ClientConfig(snapshot_slot="")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("WITHDRAW_CLIENT_BASE_URL", "http://svc:9000/")
        monkeypatch.setenv("WITHDRAW_CLIENT_SNAPSHOT_TTL_SECONDS", "60")
        monkeypatch.setenv("WITHDRAW_CLIENT_SNAPSHOT_DIR", "")

        config = ClientConfig.from_env()

        assert config.base_url == "http://svc:9000"
        assert config.snapshot_ttl_seconds == 60
        assert config.snapshot_dir is None

    def test_from_dict(self):
        config = ClientConfig.from_dict({"snapshot_dir": "/tmp/withdraw"})
        assert config.snapshot_dir == "/tmp/withdraw"
