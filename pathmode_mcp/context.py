"""Intent sources and the server context threaded through construction.

The server runs either against the Pathmode API (cloud) or against intent
files on disk (local). Which one is decided once, at startup, and carried in a
:class:`ServerContext`; tool handlers only ever talk to the context.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, runtime_checkable

from .client import PathmodeClient
from .config import PathmodeConfig, ServerMode
from .errors import ConfigurationError
from .local_reader import read_local_intents
from .models import Intent

logger = logging.getLogger("pathmode.context")


@runtime_checkable
class IntentSource(Protocol):
    """Anything that can return the intents of one workspace."""

    async def list_intents(self, status: Optional[str] = None) -> List[Intent]:
        """Return all intents, or only those with ``status`` when given."""
        ...


class CloudIntentSource:
    """Intents served by the Pathmode API."""

    def __init__(self, client: PathmodeClient):
        self.client = client

    async def list_intents(self, status: Optional[str] = None) -> List[Intent]:
        return await self.client.list_intents(status)


class LocalIntentSource:
    """Intents parsed from markdown files under ``root``."""

    def __init__(self, root: Path):
        self.root = Path(root)

    async def list_intents(self, status: Optional[str] = None) -> List[Intent]:
        intents = await asyncio.to_thread(read_local_intents, self.root)
        if status:
            wanted = str(status).strip().lower()
            intents = [intent for intent in intents if intent.status.value == wanted]
        return intents


@dataclass(slots=True)
class ServerContext:
    """Mode, intent source and (in cloud mode) the API client."""

    mode: ServerMode
    source: IntentSource
    client: Optional[PathmodeClient] = None
    root: Optional[Path] = None

    @property
    def is_local(self) -> bool:
        return self.mode is ServerMode.LOCAL

    def require_client(self) -> PathmodeClient:
        if self.client is None:
            raise ConfigurationError("This operation requires cloud mode.")
        return self.client

    @classmethod
    def cloud(cls, config: PathmodeConfig, client: Optional[PathmodeClient] = None) -> "ServerContext":
        client = client or PathmodeClient(config)
        logger.info(
            f"Cloud mode against {config.api_url}",
            extra={"extra_fields": {"config": config.to_dict()}},
        )
        return cls(mode=ServerMode.CLOUD, source=CloudIntentSource(client), client=client)

    @classmethod
    def local(cls, root: Path) -> "ServerContext":
        logger.info(f"Local mode reading intents from {root}")
        return cls(mode=ServerMode.LOCAL, source=LocalIntentSource(root), root=Path(root))
