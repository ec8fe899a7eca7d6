"""Tool, resource and prompt handlers for the Pathmode MCP server.

Handlers return plain dictionaries (or text) ready for FastMCP to serialize.
Failures are logged with context and reported as ``{"error": ...}``
dictionaries so that an agent always receives a readable answer.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Union

from .context import ServerContext
from .graph import AnalysisKind, IntentGraphAnalyzer
from .models import Intent, IntentStatus
from .pathmode_logging import (
    log_error_with_context,
    log_note_logged,
    log_operation,
    log_status_update,
)

logger = logging.getLogger("pathmode.tools")

NO_INTENTS_MESSAGE = "No intents found in workspace."
CLOUD_MODE_SUGGESTION = "Set PATHMODE_API_KEY (or run `intentspec login`) and restart without --local."


def _failure(operation: str, error: Exception, prefix: str, **context) -> Dict[str, Any]:
    log_error_with_context(error, {"operation": operation, **context})
    return {"error": f"{prefix}: {error}"}


def _cloud_only(what: str) -> Dict[str, str]:
    return {"error": f"{what} requires cloud mode.", "suggestion": CLOUD_MODE_SUGGESTION}


class IntentTools:
    """Implementation of every tool exposed by the server."""

    def __init__(self, context: ServerContext):
        self.context = context

    async def _find_local(self, intent_id: str) -> Optional[Intent]:
        for intent in await self.context.source.list_intents():
            if intent.id == intent_id:
                return intent
        return None

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def get_current_intent(self, status: Optional[str] = None) -> Dict[str, Any]:
        """First intent with ``status`` (cloud defaults to approved, then any)."""
        try:
            source = self.context.source
            if self.context.is_local:
                intents = await source.list_intents(status)
                if not intents:
                    return {"message": "No intents found locally."}
                return intents[0].to_dict()

            intents = await source.list_intents(status or IntentStatus.APPROVED.value)
            if not intents:
                intents = await source.list_intents()
            if not intents:
                return {"message": NO_INTENTS_MESSAGE}
            return intents[0].to_dict()
        except Exception as e:
            return _failure("get_current_intent", e, "Failed to fetch current intent", status=status)

    async def list_intents(self, status: Optional[str] = None) -> Dict[str, Any]:
        try:
            intents = await self.context.source.list_intents(status)
        except Exception as e:
            return _failure("list_intents", e, "Failed to list intents", status=status)
        return {"intents": [intent.to_dict() for intent in intents], "count": len(intents)}

    async def get_intent(self, intent_id: str) -> Dict[str, Any]:
        try:
            if self.context.is_local:
                intent = await self._find_local(intent_id)
                if intent is None:
                    return {"message": f'No intent found with ID "{intent_id}" locally.'}
            else:
                intent = await self.context.require_client().get_intent(intent_id)
        except Exception as e:
            return _failure("get_intent", e, "Failed to fetch intent", intent_id=intent_id)
        return intent.to_dict()

    async def get_intent_relations(self, intent_id: str) -> Dict[str, Any]:
        """What the intent depends on, enables or blocks."""
        result = await self.get_intent(intent_id)
        if "id" not in result:
            return result
        return {
            "intentId": result["id"],
            "userGoal": result.get("userGoal"),
            "relations": result.get("relations", []),
        }

    async def search_intents(self, query: str, status: Optional[str] = None) -> Dict[str, Any]:
        """Case-insensitive search over goals, objectives, outcomes and constraints."""
        try:
            intents = await self.context.source.list_intents(status)
        except Exception as e:
            return _failure("search_intents", e, "Search failed", query=query)

        needle = query.lower()
        matches = [intent for intent in intents if needle in intent.searchable_text()]
        if self.context.is_local:
            results = [intent.to_dict() for intent in matches]
        else:
            results = [intent.summary() for intent in matches]
        return {"results": results, "count": len(results), "query": query}

    async def analyze_intent_graph(self, analysis: Optional[str] = None) -> Dict[str, Any]:
        """Critical path, cycles, bottlenecks, orphans and status distribution."""
        try:
            kind = AnalysisKind(analysis or AnalysisKind.FULL.value)
        except ValueError:
            return {
                "error": f"Unknown analysis '{analysis}'",
                "available_analyses": [kind.value for kind in AnalysisKind],
            }

        try:
            with log_operation("analyze_intent_graph", analysis=kind.value, mode=self.context.mode.value):
                intents = await self.context.source.list_intents()
                if not intents:
                    return {"message": NO_INTENTS_MESSAGE, "total": 0}
                return IntentGraphAnalyzer(intents).analyze(kind)
        except Exception as e:
            return _failure("analyze_intent_graph", e, "Graph analysis failed", analysis=kind.value)

    async def get_workspace(self) -> Dict[str, Any]:
        if self.context.is_local:
            return _cloud_only("Workspace details")
        try:
            workspace = await self.context.require_client().get_workspace()
        except Exception as e:
            return _failure("get_workspace", e, "Failed to fetch workspace")
        return workspace.to_dict()

    async def get_constitution(self) -> Any:
        if self.context.is_local:
            return _cloud_only("Constitution rules")
        try:
            return await self.context.require_client().get_constitution()
        except Exception as e:
            return _failure("get_constitution", e, "Failed to fetch constitution")

    async def export_context(self, format: str, intent_id: Optional[str] = None) -> Union[str, Dict[str, Any]]:
        if self.context.is_local:
            return _cloud_only("Export")
        try:
            return await self.context.require_client().export_context(format, intent_id)
        except Exception as e:
            return _failure("export_context", e, "Export failed", format=format, intent_id=intent_id)

    async def get_agent_prompt(self, intent_id: str, mode: str = "execute") -> Union[str, Dict[str, Any]]:
        if self.context.is_local:
            return _cloud_only("Agent prompt generation")
        try:
            result = await self.context.require_client().get_intent_prompt(intent_id, mode=mode)
        except Exception as e:
            return _failure("get_agent_prompt", e, "Failed to fetch agent prompt", intent_id=intent_id)
        return result.get("prompt", "") if isinstance(result, dict) else str(result)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def update_intent_status(self, intent_id: str, status: str) -> Dict[str, Any]:
        if self.context.is_local:
            return _cloud_only("Status updates")
        try:
            new_status = IntentStatus.parse(status, intent_id)
            result = await self.context.require_client().update_intent_status(intent_id, new_status.value)
        except Exception as e:
            return _failure("update_intent_status", e, "Status update failed", intent_id=intent_id, status=status)

        log_status_update(intent_id, new_status.value)
        return {
            "success": True,
            "intentId": intent_id,
            "status": new_status.value,
            "result": result,
            "message": f'Intent {intent_id} status updated to "{new_status.value}".',
        }

    async def log_implementation_note(self, intent_id: str, note: str) -> Dict[str, Any]:
        if self.context.is_local:
            return _cloud_only("Implementation notes")
        if not note.strip():
            return {"error": "Note cannot be empty"}
        try:
            result = await self.context.require_client().log_note(intent_id, note, "mcp")
        except Exception as e:
            return _failure("log_implementation_note", e, "Failed to log note", intent_id=intent_id)

        log_note_logged(intent_id, note_length=len(note))
        return {
            "success": True,
            "intentId": intent_id,
            "result": result,
            "message": f'Note logged for intent {intent_id}: "{note}"',
        }

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def current_intent_resource(self) -> str:
        current = await self.get_current_intent()
        if "id" not in current:
            current = None
        return json.dumps(current, indent=2)

    async def graph_resource(self) -> str:
        try:
            intents = await self.context.source.list_intents()
        except Exception as e:
            log_error_with_context(e, {"operation": "graph_resource"})
            return json.dumps({"error": "Failed to fetch intent graph"})
        nodes: List[Dict[str, Any]] = [intent.graph_node() for intent in intents]
        return json.dumps(nodes, indent=2)

    async def workspace_strategy_resource(self) -> str:
        if self.context.is_local:
            return json.dumps({"error": "Workspace strategy not available in local mode"})
        try:
            workspace = await self.context.require_client().get_workspace()
        except Exception as e:
            log_error_with_context(e, {"operation": "workspace_strategy_resource"})
            return json.dumps({"error": "Failed to fetch workspace strategy"})
        return json.dumps(workspace.strategy_view(), indent=2)


# ----------------------------------------------------------------------
# Prompts
# ----------------------------------------------------------------------

def implement_intent_prompt(intent_id: str) -> str:
    return (
        f"I need to implement intent {intent_id}. Please:\n"
        "1. Use the get_agent_prompt tool to fetch the full execution prompt for this intent\n"
        "2. Use get_constitution to check for workspace constraints I must respect\n"
        "3. Review the intent details and create an implementation plan\n"
        '4. After implementation, use update_intent_status to mark it as "shipped"\n'
        "5. Use log_implementation_note to document key technical decisions"
    )


REVIEW_RISKS_PROMPT = (
    "Please analyze our intent graph for risks:\n"
    '1. Use analyze_intent_graph with analysis "full" to get the complete graph analysis\n'
    "2. Summarize the critical path and explain why it matters\n"
    "3. Flag any cycles (circular dependencies) as urgent issues\n"
    "4. Identify bottlenecks, intents that block many others, especially if still in draft\n"
    "5. Suggest concrete actions to reduce risk"
)

WHAT_NEXT_PROMPT = (
    "Help me decide what to work on next:\n"
    '1. Use analyze_intent_graph with analysis "critical-path" to find the critical path\n'
    '2. Use list_intents with status "approved" to see what\'s ready for implementation\n'
    "3. Consider: which approved intents are on the critical path? Which unblock the most other work?\n"
    "4. Recommend the single highest-impact intent to implement next, and explain why"
)
