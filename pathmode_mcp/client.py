"""Async client for the Pathmode REST API."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from .config import PathmodeConfig
from .errors import PathmodeAPIError, PathmodeConnectionError, PathmodeError
from .models import Intent, IntentStatus, PathmodeWorkspace

logger = logging.getLogger("pathmode.client")

EXPORT_FORMATS = ("claude-md", "cursorrules", "intent-md")
PROMPT_MODES = ("draft", "execute")


class PathmodeClient:
    """Thin wrapper over ``/api/v1`` that returns validated models.

    Every request opens its own ``httpx.AsyncClient`` so that one client
    instance can be shared by concurrent tool calls. ``transport`` is passed
    straight to httpx and is how tests substitute a ``MockTransport``.
    """

    def __init__(
        self,
        config: PathmodeConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        self.config = config
        self.base_url = f"{config.api_url}/api/v1"
        self.timeout = config.timeout if timeout is None else timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url} params={params}")
        try:
            async with httpx.AsyncClient(
                headers=self._headers(),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, url, params=params, json=json)
        except httpx.HTTPError as e:
            logger.error(f"Request to {url} failed: {e}")
            raise PathmodeConnectionError(f"Could not reach Pathmode API at {url}: {e}") from e

        if response.is_error:
            detail = response.reason_phrase
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("error"):
                    detail = str(body["error"])
            except ValueError:
                pass
            logger.warning(f"{method} {url} returned {response.status_code}: {detail}")
            raise PathmodeAPIError(response.status_code, detail)

        return response

    async def _json(self, method: str, path: str, **kwargs) -> Any:
        response = await self._request(method, path, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise PathmodeError(f"Pathmode API returned invalid JSON for {path}") from e

    async def list_intents(self, status: Optional[str] = None) -> List[Intent]:
        """List intents, optionally filtered server-side by status."""
        params = {"status": status} if status else None
        data = await self._json("GET", "/intents", params=params)
        intents = data.get("intents", []) if isinstance(data, dict) else []
        return [Intent.from_dict(item, source="cloud") for item in intents]

    async def get_intent(self, intent_id: str) -> Intent:
        data = await self._json("GET", f"/intents/{intent_id}")
        return Intent.from_dict(data, source="cloud")

    async def get_intent_prompt(
        self, intent_id: str, agent_type: str = "claude-code", mode: str = "execute"
    ) -> Dict[str, Any]:
        """Fetch the execution prompt (``{"prompt": ..., "json": ...}``)."""
        if mode not in PROMPT_MODES:
            raise ValueError(f"mode must be one of {', '.join(PROMPT_MODES)}")
        return await self._json(
            "GET",
            f"/intents/{intent_id}/prompt",
            params={"agent_type": agent_type, "mode": mode},
        )

    async def update_intent_status(self, intent_id: str, status: str) -> Dict[str, Any]:
        status = IntentStatus.parse(status, intent_id).value
        return await self._json("PATCH", f"/intents/{intent_id}/status", json={"status": status})

    async def log_note(self, intent_id: str, note: str, source: str = "mcp") -> Dict[str, Any]:
        return await self._json(
            "POST", f"/intents/{intent_id}/notes", json={"note": note, "source": source}
        )

    async def get_workspace(self) -> PathmodeWorkspace:
        data = await self._json("GET", "/workspace")
        return PathmodeWorkspace.from_dict(data)

    async def get_constitution(self) -> Any:
        return await self._json("GET", "/workspace/constitution")

    async def export_context(self, format: str, intent_id: Optional[str] = None) -> str:
        """Export workspace context as CLAUDE.md, .cursorrules or intent.md text."""
        if format not in EXPORT_FORMATS:
            raise ValueError(f"format must be one of {', '.join(EXPORT_FORMATS)}")
        params = {"format": format}
        if intent_id:
            params["intent_id"] = intent_id
        response = await self._request("GET", "/export", params=params)
        return response.text
