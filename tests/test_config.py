"""Tests for environment-driven configuration."""

import os

import pytest

from scripts.inventory.config import DEFAULT_REGIONS, ThrottleConfig, load_config

ENV_VARS = (
    "AWS_PROFILE", "AWS_CREDENTIALS", "AWS_CONNECT_TIMEOUT", "AWS_READ_TIMEOUT",
    "THROTTLE_BASE_DELAY_MS", "THROTTLE_BACKOFF_MULTIPLIER", "THROTTLE_MAX_DELAY_MS",
    "THROTTLE_MAX_ATTEMPTS", "INVENTORY_REGIONS", "INVENTORY_RESOURCE_KIND",
    "INVENTORY_CHANNEL_CAPACITY", "INVENTORY_MAX_RESOLVERS", "INVENTORY_STOP_ON_FIRST_MATCH",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """No inventory variables set and no .env file in reach."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestLoadConfig:
    def test_defaults(self, clean_env):
        config = load_config()
        assert config.regions == DEFAULT_REGIONS
        assert len(config.regions) == 15
        assert config.resource_kind == "vpc"
        assert config.channel_capacity == 100
        assert config.max_resolvers == 16
        assert config.stop_on_first_match is False
        assert config.aws.profile is None
        assert config.aws.credentials_file is None
        assert config.throttle.max_attempts is None
        assert config.log_level == "WARNING"

    def test_overrides(self, clean_env):
        clean_env.setenv("AWS_PROFILE", "audit")
        clean_env.setenv("AWS_CREDENTIALS", "/tmp/creds")
        clean_env.setenv("INVENTORY_REGIONS", " eu-west-1, us-east-1 ,,")
        clean_env.setenv("INVENTORY_RESOURCE_KIND", "subnet")
        clean_env.setenv("INVENTORY_CHANNEL_CAPACITY", "10")
        clean_env.setenv("INVENTORY_STOP_ON_FIRST_MATCH", "true")
        clean_env.setenv("THROTTLE_MAX_ATTEMPTS", "5")

        config = load_config()

        assert config.aws.profile == "audit"
        assert config.aws.credentials_file == "/tmp/creds"
        assert config.regions == ("eu-west-1", "us-east-1")
        assert config.resource_kind == "subnet"
        assert config.channel_capacity == 10
        assert config.stop_on_first_match is True
        assert config.throttle.max_attempts == 5

    def test_dotenv_file(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("INVENTORY_REGIONS=ap-south-1\n")
        try:
            assert load_config().regions == ("ap-south-1",)
        finally:
            os.environ.pop("INVENTORY_REGIONS", None)

    @pytest.mark.parametrize(
        "var,value",
        [
            ("INVENTORY_CHANNEL_CAPACITY", "0"),
            ("INVENTORY_CHANNEL_CAPACITY", "lots"),
            ("INVENTORY_MAX_RESOLVERS", "0"),
            ("THROTTLE_BACKOFF_MULTIPLIER", "0.5"),
            ("THROTTLE_BACKOFF_MULTIPLIER", "fast"),
        ],
    )
    def test_invalid_values(self, clean_env, var, value):
        clean_env.setenv(var, value)
        with pytest.raises(ValueError, match=var):
            load_config()


class TestThrottleConfig:
    def test_policy_in_seconds(self):
        policy = ThrottleConfig(base_delay_ms=100, multiplier=1.0, max_delay_ms=100).policy()
        assert policy.base_delay == pytest.approx(0.1)
        assert policy.delay_for(5) == pytest.approx(0.1)
        assert policy.max_attempts is None
