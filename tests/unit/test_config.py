"""Tests for configuration loading and management."""

from pathlib import Path

import pytest

from billing_provisioner.config import (
    Config,
    ConfigurationError,
    get_config,
    reload_config,
    reset_config,
)

SHIPPED_CONFIG = Path(__file__).resolve().parents[2] / "config" / "billing.yaml"

FULL_ENV = {
    "SUPABASE_URL": "https://project.supabase.co",
    "ANON_KEY": "anon-key-value",
    "SERVICE_ROLE_KEY": "service-role-key-value",
    "RAZORPAY_KEY_ID": "rzp_test_key",
    "RAZORPAY_KEY_SECRET": "rzp_test_secret",
    "RAZORPAY_PLAN_ID": "plan_basic",
}


@pytest.fixture
def missing_path(tmp_path):
    return str(tmp_path / "absent.yaml")


@pytest.fixture
def yaml_path(tmp_path):
    path = tmp_path / "billing.yaml"
    path.write_text(
        "billing_table: billing_records\n"
        "subscription_total_count: 6\n"
        "razorpay_api_base: https://razorpay.internal/\n",
        encoding="utf-8",
    )
    return str(path)


class TestEnvironment:
    def test_full_environment(self, missing_path):
        settings = Config(missing_path, environ=FULL_ENV).settings

        assert settings.supabase_url == "https://project.supabase.co"
        assert settings.razorpay_plan_id == "plan_basic"
        assert settings.identity_configured
        assert settings.processor_configured

    def test_empty_environment_loads_unconfigured(self, missing_path):
        settings = Config(missing_path, environ={}).settings

        assert not settings.identity_configured
        assert not settings.processor_configured

    def test_supabase_prefixed_fallbacks(self, missing_path):
        env = dict(FULL_ENV)
        del env["ANON_KEY"]
        del env["SERVICE_ROLE_KEY"]
        env["SUPABASE_ANON_KEY"] = "fallback-anon"
        env["SUPABASE_SERVICE_ROLE_KEY"] = "fallback-service"

        settings = Config(missing_path, environ=env).settings

        assert settings.anon_key == "fallback-anon"
        assert settings.service_role_key == "fallback-service"

    def test_primary_name_wins(self, missing_path):
        env = dict(FULL_ENV, SUPABASE_ANON_KEY="fallback-anon")

        assert Config(missing_path, environ=env).settings.anon_key == "anon-key-value"

    def test_empty_value_falls_through(self, missing_path):
        env = dict(FULL_ENV, ANON_KEY="", SUPABASE_ANON_KEY="fallback-anon")

        assert Config(missing_path, environ=env).settings.anon_key == "fallback-anon"

    def test_invalid_number(self, missing_path):
        env = dict(FULL_ENV, RAZORPAY_SUBSCRIPTION_TOTAL_COUNT="twelve")

        with pytest.raises(ConfigurationError, match="validation failed"):
            Config(missing_path, environ=env)

    def test_invalid_backend(self, missing_path):
        with pytest.raises(ConfigurationError):
            Config(missing_path, environ={"BILLING_STORE_BACKEND": "redis"})


class TestYamlFile:
    def test_yaml_values(self, yaml_path):
        settings = Config(yaml_path, environ={}).settings

        assert settings.billing_table == "billing_records"
        assert settings.subscription_total_count == 6
        assert settings.razorpay_api_base == "https://razorpay.internal"

    def test_environment_overrides_yaml(self, yaml_path):
        env = dict(FULL_ENV, RAZORPAY_SUBSCRIPTION_TOTAL_COUNT="24")

        assert Config(yaml_path, environ=env).settings.subscription_total_count == 24

    def test_config_path_from_env(self, yaml_path):
        config = Config(environ={"CONFIG_PATH": yaml_path})

        assert str(config.config_path) == yaml_path
        assert config.settings.billing_table == "billing_records"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert Config(str(path), environ={}).settings.billing_table == "user_billing"

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("billing_table: [unterminated\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="parse YAML"):
            Config(str(path), environ={})

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="mapping"):
            Config(str(path), environ={})

    def test_shipped_config_is_valid(self):
        settings = Config(str(SHIPPED_CONFIG), environ={}).settings

        assert settings.billing_store_backend == "supabase"
        assert settings.subscription_total_count == 12


class TestGlobalConfig:
    @pytest.fixture(autouse=True)
    def isolate(self, monkeypatch, missing_path):
        for name in FULL_ENV:
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("CONFIG_PATH", missing_path)
        reset_config()
        yield
        reset_config()

    def test_singleton(self):
        assert get_config() is get_config()

    def test_reload_picks_up_environment(self, monkeypatch):
        config = get_config()
        assert config.settings.razorpay_plan_id is None

        monkeypatch.setenv("RAZORPAY_PLAN_ID", "plan_new")
        reload_config()

        assert get_config() is config
        assert config.settings.razorpay_plan_id == "plan_new"
