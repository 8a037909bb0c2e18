"""
Configuration Management for Curator

Loads configuration from ~/.curator/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field

logger = logging.getLogger("curator.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".curator"
CONFIG_PATH = CONFIG_DIR / "config.json"

DEFAULT_API_URL = "https://www.noverload.com"

_TRUTHY = ("true", "1", "yes", "on")


@dataclass
class BackendConfig:
    """Remote content service configuration"""
    api_url: str = DEFAULT_API_URL
    access_token: str = ""
    timeout: float = 30.0


@dataclass
class ServerConfig:
    """MCP server configuration"""
    server_name: str = "curator_mcp_server"
    read_only: bool = True


@dataclass
class RetrieverConfig:
    """Retrieval and token budget configuration"""
    default_limit: int = 10
    min_relevance: float = 0.25
    single_item_gate: int = 50_000  # get_content_details
    batch_gate: int = 100_000  # batch_get_content, summed across items
    preview_chars: int = 500


@dataclass
class CuratorConfig:
    """Main Curator configuration"""
    backend: BackendConfig = field(default_factory=BackendConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_bool(value, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY


def _parse_backend_config(data: dict) -> BackendConfig:
    """Parse backend section from config dict"""
    backend_data = data.get("backend", {})
    return BackendConfig(
        api_url=backend_data.get("api_url") or backend_data.get("apiUrl", DEFAULT_API_URL),
        access_token=backend_data.get("access_token") or backend_data.get("accessToken", ""),
        timeout=float(backend_data.get("timeout", 30.0)),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        server_name=server_data.get("server_name", "curator_mcp_server"),
        read_only=_parse_bool(server_data.get("read_only"), True),
    )


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section from config dict"""
    retriever_data = data.get("retriever", {})
    return RetrieverConfig(
        default_limit=retriever_data.get("default_limit", 10),
        min_relevance=retriever_data.get("min_relevance", 0.25),
        single_item_gate=retriever_data.get("single_item_gate", 50_000),
        batch_gate=retriever_data.get("batch_gate", 100_000),
        preview_chars=retriever_data.get("preview_chars", 500),
    )


def _apply_inline_config(config: CuratorConfig, raw: str) -> None:
    """Apply a NOVERLOAD_CONFIG JSON blob: {accessToken, apiUrl, readOnly}."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring NOVERLOAD_CONFIG: invalid JSON (%s)", e)
        return
    if not isinstance(data, dict):
        logger.warning("Ignoring NOVERLOAD_CONFIG: expected a JSON object")
        return

    if data.get("accessToken"):
        config.backend.access_token = data["accessToken"]
        config._env_sourced_keys.add("access_token")
    if data.get("apiUrl"):
        config.backend.api_url = data["apiUrl"]
    if "readOnly" in data:
        config.server.read_only = _parse_bool(data["readOnly"], True)


def load_config() -> CuratorConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (individual vars win over NOVERLOAD_CONFIG)
    2. Config file (~/.curator/config.json)
    3. Default values
    """
    config = CuratorConfig()

    # Load from config file if exists
    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.backend = _parse_backend_config(data)
            config.server = _parse_server_config(data)
            config.retriever = _parse_retriever_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", CONFIG_PATH, e)

    inline = os.getenv("NOVERLOAD_CONFIG")
    if inline:
        _apply_inline_config(config, inline)

    # Environment variable overrides
    if os.getenv("NOVERLOAD_API_URL"):
        config.backend.api_url = os.getenv("NOVERLOAD_API_URL")
    if os.getenv("NOVERLOAD_ACCESS_TOKEN"):
        config.backend.access_token = os.getenv("NOVERLOAD_ACCESS_TOKEN")
        config._env_sourced_keys.add("access_token")
    if os.getenv("NOVERLOAD_TIMEOUT"):
        config.backend.timeout = float(os.getenv("NOVERLOAD_TIMEOUT"))
    if os.getenv("NOVERLOAD_READ_ONLY"):
        config.server.read_only = _parse_bool(os.getenv("NOVERLOAD_READ_ONLY"), True)

    if os.getenv("CURATOR_SERVER_NAME"):
        config.server.server_name = os.getenv("CURATOR_SERVER_NAME")
    if os.getenv("CURATOR_SINGLE_ITEM_GATE"):
        config.retriever.single_item_gate = int(os.getenv("CURATOR_SINGLE_ITEM_GATE"))
    if os.getenv("CURATOR_BATCH_GATE"):
        config.retriever.batch_gate = int(os.getenv("CURATOR_BATCH_GATE"))

    return config


def save_config(config: CuratorConfig) -> None:
    """Save configuration to file.

    An access token that came from the environment is written as an empty
    string so that it is not persisted to disk.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())
    token = "" if "access_token" in env_sourced else config.backend.access_token

    data = {
        "backend": {
            "api_url": config.backend.api_url,
            "access_token": token,
            "timeout": config.backend.timeout,
        },
        "server": {
            "server_name": config.server.server_name,
            "read_only": config.server.read_only,
        },
        "retriever": {
            "default_limit": config.retriever.default_limit,
            "min_relevance": config.retriever.min_relevance,
            "single_item_gate": config.retriever.single_item_gate,
            "batch_gate": config.retriever.batch_gate,
            "preview_chars": config.retriever.preview_chars,
        },
    }

    with open(CONFIG_PATH, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    CONFIG_PATH.chmod(0o600)
