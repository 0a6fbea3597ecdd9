"""
Configuration loader for the Good Vibes proxy.

Looks for config.yaml in this order:
1. Explicit path passed to Config
2. Environment variable CONFIG_PATH
3. ./config.yaml (local development)
4. /srv/goodvibes-proxy/config.yaml (Docker)
5. Falls back to default config
"""

import os
from pathlib import Path
from typing import Any

import yaml

DEFAULT_OFFICEVIBE_API_URL = "https://api.workleap.com/officevibe/goodvibes"
DEFAULT_USERS_API_URL = "https://api.workleap.com/public/users"


class Config:
    def __init__(self, config_path: str | None = None, data: dict[str, Any] | None = None):
        if data is not None:
            # In-memory configuration, used by tests and embedding callers
            self.config_path = None
            self._config = data
            return

        if config_path:
            self.config_path = Path(config_path)
        elif os.getenv("CONFIG_PATH"):
            self.config_path = Path(os.getenv("CONFIG_PATH"))
        elif Path("./config.yaml").exists():
            self.config_path = Path("./config.yaml")
        elif Path("/srv/goodvibes-proxy/config.yaml").exists():
            self.config_path = Path("/srv/goodvibes-proxy/config.yaml")
        else:
            self.config_path = None

        self._config = self._load_config()

    def _load_config(self) -> dict[str, Any]:
        """
        Load configuration from the YAML file.

        Returns default config if file not found or unreadable.
        """
        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, encoding="utf-8") as f:
                    config_data = yaml.safe_load(f) or {}
                    print(f"✓ Loaded config from: {self.config_path}")
                    return config_data
            except Exception as e:
                print(f"✗ Error loading config from {self.config_path}: {e}")
        else:
            print("⚠ Config file not found, using defaults")
            if self.config_path:
                print(f"  Tried: {self.config_path}")

        return {
            "proxy": {
                "officevibe_api_url": DEFAULT_OFFICEVIBE_API_URL,
                "users_api_url": DEFAULT_USERS_API_URL,
                "server": {"host": "127.0.0.1", "port": 5000},
                "http": {"timeout_seconds": 30},
                "avatars": {
                    "ttl_seconds": 3600,
                    "max_entries": 10000,
                    "max_concurrency": 10,
                    "max_attempts": 3,
                    "base_delay_seconds": 1.0,
                },
                "dataset": {
                    "refresh_interval_seconds": 300,
                    "page_limit": 100,
                    "max_pages": None,
                },
                "cors": {"allow_origins": ["*"]},
            }
        }

    def _section(self, name: str) -> dict[str, Any]:
        section = self._config.get("proxy", {}).get(name, {})
        return section if isinstance(section, dict) else {}

    # =========================================================================
    # Upstream API
    # =========================================================================

    @property
    def officevibe_api_url(self) -> str:
        env_url = os.getenv("OFFICEVIBE_API_URL")
        if env_url:
            return env_url
        return self._config.get("proxy", {}).get("officevibe_api_url", DEFAULT_OFFICEVIBE_API_URL)

    @property
    def users_api_url(self) -> str:
        env_url = os.getenv("WORKLEAP_USERS_URL")
        if env_url:
            return env_url
        return self._config.get("proxy", {}).get("users_api_url", DEFAULT_USERS_API_URL)

    @property
    def subscription_key(self) -> str:
        """
        Shared secret sent as the workleap-subscription-key header.

        OFFICEVIBE_API_KEY takes precedence over the config file so the key
        can be injected by the deployment's secret store.
        """
        return os.getenv("OFFICEVIBE_API_KEY") or self._config.get("proxy", {}).get(
            "subscription_key", ""
        )

    @property
    def http_timeout(self) -> float:
        return self._section("http").get("timeout_seconds", 30)

    # =========================================================================
    # Server
    # =========================================================================

    @property
    def server_host(self) -> str:
        return self._section("server").get("host", "127.0.0.1")

    @property
    def server_port(self) -> int:
        return self._section("server").get("port", 5000)

    @property
    def cors_allow_origins(self) -> list[str]:
        origins = self._section("cors").get("allow_origins", ["*"])
        return origins if isinstance(origins, list) else ["*"]

    # =========================================================================
    # Avatar lookup cache
    # =========================================================================

    @property
    def avatar_ttl(self) -> int:
        """Lifetime of a cached avatar lookup in seconds (default 1 hour)."""
        return self._section("avatars").get("ttl_seconds", 3600)

    @property
    def avatar_max_entries(self) -> int:
        return self._section("avatars").get("max_entries", 10000)

    @property
    def avatar_max_concurrency(self) -> int:
        """Upper bound on user lookups in flight across all keys."""
        return self._section("avatars").get("max_concurrency", 10)

    @property
    def avatar_max_attempts(self) -> int:
        return self._section("avatars").get("max_attempts", 3)

    @property
    def avatar_base_delay(self) -> float:
        return self._section("avatars").get("base_delay_seconds", 1.0)

    # =========================================================================
    # Full-dataset refresh cache
    # =========================================================================

    @property
    def dataset_refresh_interval(self) -> float:
        return self._section("dataset").get("refresh_interval_seconds", 300)

    @property
    def dataset_page_limit(self) -> int:
        return self._section("dataset").get("page_limit", 100)

    @property
    def dataset_max_pages(self) -> int | None:
        """
        Safety bound on pages walked per refresh cycle.

        None (the default) leaves the walk unbounded; the upstream's
        continuation token is then the only terminator.
        """
        return self._section("dataset").get("max_pages")


# Global config singleton used across the proxy
config = Config()
