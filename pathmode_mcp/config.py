"""Configuration loading for the Pathmode MCP server.

Environment variables take precedence over the user config file written by
``intentspec login``:

- ``PATHMODE_API_KEY`` / ``PATHMODE_API_URL`` / ``PATHMODE_WORKSPACE_ID``
- ``~/.pathmode/config.json`` with ``apiKey``, ``apiUrl`` and ``workspaceId``
- ``PATHMODE_TIMEOUT``: HTTP timeout in seconds
- ``PATHMODE_PROJECT_ROOT``: directory scanned in local mode
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigurationError

logger = logging.getLogger("pathmode.config")

DEFAULT_API_URL = "https://pathmode.io"
DEFAULT_TIMEOUT = 30.0
CONFIG_DIR = Path.home() / ".pathmode"
CONFIG_FILE = CONFIG_DIR / "config.json"

API_KEY_ENV = "PATHMODE_API_KEY"
API_URL_ENV = "PATHMODE_API_URL"
WORKSPACE_ENV = "PATHMODE_WORKSPACE_ID"
TIMEOUT_ENV = "PATHMODE_TIMEOUT"
PROJECT_ROOT_ENV = "PATHMODE_PROJECT_ROOT"

MISSING_CONFIG_HELP = (
    "No Pathmode configuration found. Either:\n"
    "  1. Run `intentspec login` to configure\n"
    "  2. Set PATHMODE_API_KEY environment variable\n"
    "  3. Use --local flag for offline mode"
)


class ServerMode(str, Enum):
    CLOUD = "cloud"
    LOCAL = "local"


@dataclass(frozen=True, slots=True)
class PathmodeConfig:
    """Credentials and endpoint for cloud mode."""

    api_key: str
    api_url: str = DEFAULT_API_URL
    workspace_id: str = ""
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self):
        if not self.api_key:
            raise ConfigurationError("Pathmode API key is empty")
        object.__setattr__(self, "api_url", (self.api_url or DEFAULT_API_URL).rstrip("/"))

    def to_dict(self) -> dict:
        """Convert to dictionary representation, with the key masked."""
        return {
            "apiKey": f"{self.api_key[:8]}..." if len(self.api_key) > 8 else "***",
            "apiUrl": self.api_url,
            "workspaceId": self.workspace_id,
            "timeout": self.timeout,
        }


def _timeout_from(env: Mapping[str, str]) -> float:
    raw = env.get(TIMEOUT_ENV)
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {TIMEOUT_ENV}={raw!r}; using {DEFAULT_TIMEOUT}s")
        return DEFAULT_TIMEOUT


def load_config(
    env: Optional[Mapping[str, str]] = None,
    config_file: Optional[Path] = None,
) -> Optional[PathmodeConfig]:
    """Resolve cloud configuration, or ``None`` when nothing is configured."""
    env = os.environ if env is None else env
    config_file = CONFIG_FILE if config_file is None else config_file
    timeout = _timeout_from(env)

    api_key = env.get(API_KEY_ENV)
    if api_key:
        logger.debug(f"Using configuration from {API_KEY_ENV}")
        return PathmodeConfig(
            api_key=api_key,
            api_url=env.get(API_URL_ENV) or DEFAULT_API_URL,
            workspace_id=env.get(WORKSPACE_ENV) or "",
            timeout=timeout,
        )

    if not config_file.exists():
        return None

    try:
        data = json.loads(config_file.read_text(encoding="utf-8"))
        config = PathmodeConfig(
            api_key=data.get("apiKey", ""),
            api_url=data.get("apiUrl") or DEFAULT_API_URL,
            workspace_id=data.get("workspaceId") or "",
            timeout=timeout,
        )
    except (OSError, ValueError, AttributeError, ConfigurationError) as e:
        logger.warning(f"Could not read Pathmode config at {config_file}: {e}")
        return None

    logger.debug(f"Using configuration from {config_file}")
    return config


def resolve_project_root(root: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Path:
    """Directory scanned for intent files in local mode."""
    env = os.environ if env is None else env
    candidate = root or env.get(PROJECT_ROOT_ENV)
    if not candidate:
        return Path.cwd().resolve()

    resolved = Path(candidate).expanduser().resolve()
    if not resolved.exists():
        raise ConfigurationError(f"Project root '{candidate}' does not exist.")
    return resolved
