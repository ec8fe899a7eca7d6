"""MCP server connecting AI coding agents to the Pathmode intent layer.

Usage:
    pathmode-mcp                 # cloud mode (PATHMODE_API_KEY or ~/.pathmode/config.json)
    pathmode-mcp --local         # local mode (reads intent.md files from the project root)
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from pathmode_mcp import __version__
from pathmode_mcp.config import MISSING_CONFIG_HELP, load_config, resolve_project_root
from pathmode_mcp.context import ServerContext
from pathmode_mcp.errors import ConfigurationError
from pathmode_mcp.pathmode_logging import setup_logging
from pathmode_mcp.tools import (
    REVIEW_RISKS_PROMPT,
    WHAT_NEXT_PROMPT,
    IntentTools,
    implement_intent_prompt,
)

logger = logging.getLogger("pathmode.server")

SERVER_NAME = "pathmode"

READ_ONLY = ToolAnnotations(readOnlyHint=True, openWorldHint=True)
WRITE_OP = ToolAnnotations(readOnlyHint=False, destructiveHint=False, openWorldHint=True)
IDEMPOTENT_WRITE = ToolAnnotations(
    readOnlyHint=False, destructiveHint=False, idempotentHint=True, openWorldHint=True
)

StatusName = Literal["draft", "validated", "approved", "shipped", "verified"]


def create_server(context: ServerContext) -> FastMCP:
    """Build a FastMCP server whose tools all act through ``context``."""

    mcp = FastMCP(SERVER_NAME)
    tools = IntentTools(context)

    # ------------------------------------------------------------------
    # Tools: read operations
    # ------------------------------------------------------------------

    @mcp.tool(title="Get Current Intent", annotations=READ_ONLY)
    async def get_current_intent(status: Optional[str] = None) -> Dict[str, Any]:
        """Get the currently active intent (first approved, or most recently updated).
        Returns the full IntentSpec with objective, outcomes, constraints, and edge cases.
        Optionally filter by status: draft, validated, approved, shipped, verified."""
        return await tools.get_current_intent(status)

    @mcp.tool(title="List Intents", annotations=READ_ONLY)
    async def list_intents(status: Optional[str] = None) -> Dict[str, Any]:
        """List all intents in the workspace with their status, objectives, and metadata."""
        return await tools.list_intents(status)

    @mcp.tool(title="Get Intent", annotations=READ_ONLY)
    async def get_intent(intent_id: str) -> Dict[str, Any]:
        """Get a single intent by ID with full details including objective, outcomes,
        constraints, edge cases, and relations."""
        return await tools.get_intent(intent_id)

    @mcp.tool(title="Get Intent Relations", annotations=READ_ONLY)
    async def get_intent_relations(intent_id: str) -> Dict[str, Any]:
        """Get the dependency graph for a specific intent. Shows what it depends on, enables, or blocks."""
        return await tools.get_intent_relations(intent_id)

    @mcp.tool(title="Search Intents", annotations=READ_ONLY)
    async def search_intents(query: str, status: Optional[str] = None) -> Dict[str, Any]:
        """Search intents by keyword across user goals, objectives, outcomes, and constraints."""
        return await tools.search_intents(query, status)

    @mcp.tool(title="Analyze Intent Graph", annotations=READ_ONLY)
    async def analyze_intent_graph(
        analysis: Literal["full", "critical-path", "risks", "status"] = "full",
    ) -> Dict[str, Any]:
        """Analyze the intent dependency graph for risks and strategic insights.
        Returns critical path, cycles, bottlenecks, orphans, and status distribution.
        analysis: full (default), critical-path, risks, or status."""
        return await tools.analyze_intent_graph(analysis)

    @mcp.tool(title="Export Context", annotations=READ_ONLY)
    async def export_context(
        format: Literal["claude-md", "cursorrules", "intent-md"],
        intent_id: Optional[str] = None,
    ) -> Union[str, Dict[str, Any]]:
        """Export workspace context as a formatted file: "claude-md" for CLAUDE.md,
        "cursorrules" for Cursor AI rules, or "intent-md" for a single intent file."""
        return await tools.export_context(format, intent_id)

    @mcp.tool(title="Get Agent Prompt", annotations=READ_ONLY)
    async def get_agent_prompt(
        intent_id: str,
        mode: Literal["draft", "execute"] = "execute",
    ) -> Union[str, Dict[str, Any]]:
        """Get a formatted execution prompt for an intent, including objective, outcomes,
        constraints, edge cases, and verification steps. draft = critique the intent, execute = implement it."""
        return await tools.get_agent_prompt(intent_id, mode)

    @mcp.tool(title="Get Workspace", annotations=READ_ONLY)
    async def get_workspace() -> Dict[str, Any]:
        """Get workspace details including strategy (vision, non-negotiables,
        architecture principles) and constitution rules."""
        return await tools.get_workspace()

    @mcp.tool(title="Get Constitution", annotations=READ_ONLY)
    async def get_constitution() -> Any:
        """Get the workspace constitution rules: mandatory constraints all implementations must respect."""
        return await tools.get_constitution()

    # ------------------------------------------------------------------
    # Tools: write operations
    # ------------------------------------------------------------------

    @mcp.tool(title="Update Intent Status", annotations=IDEMPOTENT_WRITE)
    async def update_intent_status(intent_id: str, status: StatusName) -> Dict[str, Any]:
        """Update the status of an intent, e.g. shipped after implementation or verified after testing."""
        return await tools.update_intent_status(intent_id, status)

    @mcp.tool(title="Log Implementation Note", annotations=WRITE_OP)
    async def log_implementation_note(intent_id: str, note: str) -> Dict[str, Any]:
        """Record a technical decision or implementation note for an intent."""
        return await tools.log_implementation_note(intent_id, note)

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    @mcp.prompt(
        name="implement-intent",
        description="Get full implementation context for a specific intent, including objective, "
        "outcomes, constraints, edge cases, and verification steps.",
    )
    def implement_intent(intent_id: str) -> str:
        return implement_intent_prompt(intent_id)

    @mcp.prompt(
        name="review-risks",
        description="Analyze the intent graph for architectural risks, circular dependencies, "
        "bottlenecks, and stalled work.",
    )
    def review_risks() -> str:
        return REVIEW_RISKS_PROMPT

    @mcp.prompt(
        name="what-next",
        description="Suggest the highest-priority intent to work on next, based on dependency "
        "graph analysis and current status.",
    )
    def what_next() -> str:
        return WHAT_NEXT_PROMPT

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    @mcp.resource("intent://current", name="current-intent", mime_type="application/json")
    async def current_intent() -> str:
        """The currently active intent."""
        return await tools.current_intent_resource()

    @mcp.resource("intent://graph", name="intent-graph", mime_type="application/json")
    async def intent_graph() -> str:
        """Every intent with its status and relations."""
        return await tools.graph_resource()

    @mcp.resource("intent://workspace-strategy", name="workspace-strategy", mime_type="application/json")
    async def workspace_strategy() -> str:
        """Workspace vision, principles and active constitution rules."""
        return await tools.workspace_strategy_resource()

    return mcp


def build_context(local: bool, root: Optional[str] = None) -> ServerContext:
    """Resolve the server context from CLI flags and configuration.

    Raises:
        ConfigurationError: in cloud mode when no configuration is found, or
            in local mode when ``root`` does not exist.
    """
    if local:
        return ServerContext.local(resolve_project_root(root))

    config = load_config()
    if config is None:
        raise ConfigurationError(MISSING_CONFIG_HELP)
    return ServerContext.cloud(config)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pathmode-mcp",
        description="Pathmode MCP server: expose your intent layer to AI coding agents.",
    )
    parser.add_argument("--local", action="store_true", help="Read intent.md files from disk instead of the API")
    parser.add_argument("--root", help="Project root scanned in local mode (default: current directory)")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", type=Path, help="Also write JSON logs to this file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_file)

    try:
        context = build_context(args.local, args.root)
    except ConfigurationError as e:
        print(str(e), file=sys.stderr)
        return 1

    server = create_server(context)
    logger.info(f"Starting Pathmode MCP server {__version__} in {context.mode.value} mode")
    try:
        server.run(transport="stdio")
    except Exception as e:
        logger.error(f"Failed to start Pathmode MCP server: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
