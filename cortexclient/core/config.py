"""
Cortex Client Configuration

Supports loading from YAML config file, environment variables, or code.

Priority (highest to lowest):
1. Code parameters (CortexClient(config=...), MultiRun(timeout=...))
2. Environment variables (CORTEX_URL, CORTEX_API_KEY, etc.)
3. Config file (cortex_config.local.yaml or cortex_config.yaml)
4. Default values
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml
from loguru import logger

# Config file search paths
CONFIG_FILENAMES = ["cortex_config.local.yaml", "cortex_config.yaml"]

_TRUE_VALUES = ("true", "1", "yes")


def _find_config_file(search_dir: Optional[Path] = None) -> Optional[Path]:
    """Find config file in the working directory"""
    base = search_dir or Path.cwd()

    for filename in CONFIG_FILENAMES:
        config_path = base / filename
        if config_path.exists():
            return config_path

    return None


@dataclass
class CortexConfig:
    """Cortex Client Configuration"""

    # Server
    url: str = "http://127.0.0.1:9001"
    api_key: Optional[str] = None

    # Job waiting (seconds)
    timeout: float = 300.0  # Per-analyzer wait budget
    wait_slice: float = 1.0  # Max length of one waitreport long-poll

    # HTTP (seconds)
    http_timeout: float = 30.0
    connect_timeout: float = 10.0
    verify_ssl: bool = True
    proxy: Optional[str] = None

    # File fan-out
    chunk_size: int = 64 * 1024
    max_buffered_chunks: int = 4  # Per branch

    # Orchestration
    max_workers: Optional[int] = None  # None = one thread per analyzer

    # Logging
    log_requests: bool = False  # Can be verbose

    # Source of config (for debugging)
    config_source: str = "default"

    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_yaml(cls, path: Path) -> "CortexConfig":
        """Load config from YAML file"""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        config = cls()
        config.config_source = str(path)

        if "server" in data:
            server = data["server"] or {}
            if "url" in server:
                config.url = str(server["url"])
            if server.get("api_key"):
                config.api_key = str(server["api_key"])

        if "jobs" in data:
            jobs = data["jobs"] or {}
            if "timeout" in jobs:
                config.timeout = float(jobs["timeout"])
            if "wait_slice" in jobs:
                config.wait_slice = float(jobs["wait_slice"])
            if "max_workers" in jobs:
                config.max_workers = int(jobs["max_workers"]) if jobs["max_workers"] else None

        if "fanout" in data:
            fanout = data["fanout"] or {}
            if "chunk_size" in fanout:
                config.chunk_size = int(fanout["chunk_size"])
            if "max_buffered_chunks" in fanout:
                config.max_buffered_chunks = int(fanout["max_buffered_chunks"])

        if "http" in data:
            http = data["http"] or {}
            if "timeout" in http:
                config.http_timeout = float(http["timeout"])
            if "connect_timeout" in http:
                config.connect_timeout = float(http["connect_timeout"])
            if "verify_ssl" in http:
                config.verify_ssl = bool(http["verify_ssl"])
            if http.get("proxy"):
                config.proxy = str(http["proxy"])
            if "log_requests" in http:
                config.log_requests = bool(http["log_requests"])

        return config

    @classmethod
    def from_env(cls) -> "CortexConfig":
        """Create config from environment variables"""
        config = cls()
        config.config_source = "environment"
        config._apply_env()
        return config

    def _apply_env(self) -> bool:
        """Override fields from environment variables, return True if any applied"""
        applied = False

        url = os.environ.get("CORTEX_URL")
        if url:
            self.url = url
            applied = True

        api_key = os.environ.get("CORTEX_API_KEY")
        if api_key:
            self.api_key = api_key
            applied = True

        for env_name, attr in (
            ("CORTEX_TIMEOUT", "timeout"),
            ("CORTEX_WAIT_SLICE", "wait_slice"),
        ):
            value = os.environ.get(env_name)
            if value:
                try:
                    setattr(self, attr, float(value))
                    applied = True
                except ValueError:
                    logger.warning(f"Ignoring invalid {env_name}={value!r}")

        max_workers = os.environ.get("CORTEX_MAX_WORKERS")
        if max_workers:
            try:
                self.max_workers = int(max_workers) or None
                applied = True
            except ValueError:
                logger.warning(f"Ignoring invalid CORTEX_MAX_WORKERS={max_workers!r}")

        proxy = os.environ.get("CORTEX_PROXY")
        if proxy:
            self.proxy = proxy
            applied = True

        verify_env = os.environ.get("CORTEX_VERIFY_SSL")
        if verify_env:
            self.verify_ssl = verify_env.lower() in _TRUE_VALUES
            applied = True

        log_env = os.environ.get("CORTEX_LOG_REQUESTS")
        if log_env:
            self.log_requests = log_env.lower() in _TRUE_VALUES
            applied = True

        return applied

    @classmethod
    def load(cls, search_dir: Optional[Path] = None) -> "CortexConfig":
        """
        Load config with priority:
        1. Environment variables (override)
        2. Config file (cortex_config.local.yaml or cortex_config.yaml)
        3. Default values
        """
        config_path = _find_config_file(search_dir)

        if config_path:
            try:
                config = cls.from_yaml(config_path)
                logger.debug(f"Loaded Cortex config from {config_path}")
            except Exception as e:
                logger.warning(f"Failed to load config from {config_path}: {e}")
                config = cls()
                config.config_source = "default (yaml load failed)"
        else:
            config = cls()
            config.config_source = "default"

        if config._apply_env():
            config.config_source += " + env override"

        return config


# Global default config
_default_config: Optional[CortexConfig] = None


def get_default_config() -> CortexConfig:
    """Get the global default config (loaded once)"""
    global _default_config
    if _default_config is None:
        _default_config = CortexConfig.load()
    return _default_config


def set_default_config(config: Optional[CortexConfig]) -> None:
    """Set the global default config"""
    global _default_config
    _default_config = config


def reload_config() -> CortexConfig:
    """Force reload config from file/environment"""
    global _default_config
    _default_config = CortexConfig.load()
    return _default_config
