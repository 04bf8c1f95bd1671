"""Configuration management - loads config/billing.yaml and environment variables.

Environment variables always win over the YAML file. Secrets are expected to
come from the environment only; the YAML file carries the non-secret knobs.
"""

import os
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from pydantic import ValidationError

from billing_provisioner.models import BillingSettings


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""

    pass


# Setting name -> environment variables, first non-empty wins
ENV_VARS: dict[str, tuple[str, ...]] = {
    "supabase_url": ("SUPABASE_URL",),
    "anon_key": ("ANON_KEY", "SUPABASE_ANON_KEY"),
    "service_role_key": ("SERVICE_ROLE_KEY", "SUPABASE_SERVICE_ROLE_KEY"),
    "billing_table": ("BILLING_TABLE",),
    "billing_store_backend": ("BILLING_STORE_BACKEND",),
    "razorpay_key_id": ("RAZORPAY_KEY_ID",),
    "razorpay_key_secret": ("RAZORPAY_KEY_SECRET",),
    "razorpay_plan_id": ("RAZORPAY_PLAN_ID",),
    "razorpay_api_base": ("RAZORPAY_API_BASE",),
    "subscription_total_count": ("RAZORPAY_SUBSCRIPTION_TOTAL_COUNT",),
    "http_timeout_seconds": ("HTTP_TIMEOUT_SECONDS",),
}

DEFAULT_CONFIG_PATH = Path("config/billing.yaml")


class Config:
    """Application configuration loader.

    Produces a frozen BillingSettings from, in increasing precedence:
    - model defaults
    - the YAML file (optional)
    - environment variables
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """Initialize configuration loader.

        Args:
            config_path: Path to billing.yaml. If not provided, uses CONFIG_PATH env var
                        or defaults to ./config/billing.yaml
            environ: Environment mapping (defaults to os.environ)
        """
        self._environ = environ if environ is not None else os.environ
        self._config_path = self._resolve_config_path(config_path)
        self._settings: Optional[BillingSettings] = None
        self._load_config()

    def _resolve_config_path(self, config_path: Optional[str]) -> Path:
        if config_path:
            return Path(config_path)

        env_path = self._environ.get("CONFIG_PATH")
        if env_path:
            return Path(env_path)

        return DEFAULT_CONFIG_PATH

    def _read_yaml(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            with open(self._config_path, encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}")

        if raw_config is None:
            return {}
        if not isinstance(raw_config, dict):
            raise ConfigurationError(
                f"Configuration file must contain a mapping: {self._config_path}"
            )
        return raw_config

    def _read_env(self) -> dict[str, str]:
        values: dict[str, str] = {}
        for setting, names in ENV_VARS.items():
            for name in names:
                value = self._environ.get(name)
                if value:
                    values[setting] = value
                    break
        return values

    def _load_config(self) -> None:
        raw_config = self._read_yaml()
        raw_config.update(self._read_env())

        try:
            self._settings = BillingSettings(**raw_config)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}")

    @property
    def settings(self) -> BillingSettings:
        """Get validated settings."""
        if self._settings is None:
            raise ConfigurationError("Configuration not loaded")
        return self._settings

    @property
    def config_path(self) -> Path:
        return self._config_path

    def reload(self) -> None:
        """Reload configuration from disk and environment."""
        self._load_config()


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(config_path: Optional[str] = None) -> Config:
    """Get global configuration instance (singleton).

    Args:
        config_path: Optional path to configuration file (only used on first call)

    Returns:
        Config instance
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = Config(config_path)
    return _config_instance


def reload_config() -> None:
    """Reload global configuration."""
    global _config_instance
    if _config_instance:
        _config_instance.reload()
    else:
        _config_instance = Config()


def reset_config() -> None:
    """Forget the global configuration so the next get_config() rebuilds it."""
    global _config_instance
    _config_instance = None
