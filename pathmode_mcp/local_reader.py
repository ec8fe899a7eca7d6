"""Read intent markdown files from a project directory (local mode).

An intent file is markdown with YAML frontmatter. Frontmatter keys win over
values recovered from the body (``# Title``, ``## Objective``, bullet lists
under ``## Outcomes`` and friends). Parsing is done via ``python-frontmatter``.

Files are looked up at ``<root>/intent.md`` and ``<root>/.pathmode/intents/*.md``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import frontmatter
import yaml

from .errors import IntentValidationError
from .models import DEPENDS_ON, EdgeCase, Intent, Relation, parse_relations

logger = logging.getLogger("pathmode.local")

ROOT_INTENT_FILE = "intent.md"
INTENTS_DIR = Path(".pathmode") / "intents"
DEFAULT_USER_GOAL = "Untitled Intent"

_BULLET = re.compile(r"^[-*]\s")
_BULLET_PREFIX = re.compile(r"^[-*]\s+(\[.\]\s+)?")
_BOLD_CASE = re.compile(r"^\*\*(.+?)\*\*:\s*(.+)$")
_ARROW_CASE = re.compile(r"^(.+?)\s*[→:]\s*(.+)$")
_TITLE = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def intent_files(root: Path) -> List[Path]:
    """Candidate intent files under ``root``, root file first."""
    files = []
    root_file = root / ROOT_INTENT_FILE
    if root_file.is_file():
        files.append(root_file)
    intents_dir = root / INTENTS_DIR
    if intents_dir.is_dir():
        files.extend(sorted(path for path in intents_dir.glob("*.md") if path.is_file()))
    return files


def read_local_intents(root: Path | str) -> List[Intent]:
    """Parse every intent file below ``root``; unreadable files are skipped."""
    root = Path(root)
    intents: List[Intent] = []
    for path in intent_files(root):
        intent = read_intent_file(path)
        if intent is not None:
            intents.append(intent)
    logger.debug(f"Read {len(intents)} local intents from {root}")
    return intents


def read_intent_file(path: Path) -> Optional[Intent]:
    """Parse a single intent file, or ``None`` when it cannot be used."""
    try:
        post = frontmatter.load(path)
        return parse_intent(post.metadata, post.content, default_id=path.stem)
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse frontmatter in {path}: {e}")
    except (OSError, UnicodeDecodeError, IntentValidationError) as e:
        logger.error(f"Failed to read intent file {path}: {e}")
    return None


def parse_intent(metadata: Dict[str, Any], body: str, default_id: str) -> Intent:
    """Build an Intent from frontmatter ``metadata`` and markdown ``body``."""
    payload: Dict[str, Any] = {
        "id": str(metadata.get("id") or default_id),
        "status": metadata.get("status") or "draft",
        "version": metadata.get("version") or 1,
        "objective": metadata.get("objective") or extract_section(body, "Objective"),
        "userGoal": metadata.get("userGoal") or extract_title(body) or DEFAULT_USER_GOAL,
        "stageName": metadata.get("stage"),
        "severity": metadata.get("severity"),
        "outcomes": extract_list_section(body, "Outcomes"),
        "constraints": extract_list_section(body, "Constraints"),
        "healthMetrics": extract_list_section(body, "Health Metrics"),
        "verification": metadata.get("verification") or {},
    }
    intent = Intent.from_dict(payload, source="local")
    intent.edge_cases = extract_edge_cases(body)
    intent.relations = _relations(metadata, intent.id)
    return intent


def _relations(metadata: Dict[str, Any], intent_id: str) -> List[Relation]:
    raw_relations = metadata.get("relations") or []
    if not isinstance(raw_relations, list):
        raise IntentValidationError("'relations' must be a list", intent_id=intent_id)
    relations = parse_relations(raw_relations, intent_id)

    depends_on = metadata.get("depends_on") or []
    if isinstance(depends_on, str):
        depends_on = [depends_on]
    if not isinstance(depends_on, list):
        raise IntentValidationError("'depends_on' must be an id or a list of ids", intent_id=intent_id)
    relations.extend(Relation(target_id=str(target), type=DEPENDS_ON) for target in depends_on)
    return relations


def extract_title(body: str) -> str:
    match = _TITLE.search(body)
    return match.group(1).strip() if match else ""


def extract_section(body: str, heading: str) -> str:
    """Text between ``## heading`` and the next ``##`` heading."""
    pattern = re.compile(
        rf"^##\s+{re.escape(heading)}\s*\n(.*?)(?=^##\s|\Z)",
        re.MULTILINE | re.DOTALL,
    )
    match = pattern.search(body)
    return match.group(1).strip() if match else ""


def extract_list_section(body: str, heading: str) -> List[str]:
    section = extract_section(body, heading)
    if not section:
        return []
    items = []
    for line in section.splitlines():
        if _BULLET.match(line):
            item = _BULLET_PREFIX.sub("", line).strip()
            if item:
                items.append(item)
    return items


def extract_edge_cases(body: str) -> List[EdgeCase]:
    """Edge cases written as ``**scenario**: behavior`` or ``scenario → behavior``."""
    section = extract_section(body, "Edge Cases")
    if not section:
        return []

    cases = []
    for line in section.splitlines():
        if not _BULLET.match(line):
            continue
        clean = re.sub(r"^[-*]\s+", "", line)
        match = _BOLD_CASE.match(clean) or _ARROW_CASE.match(clean)
        if match:
            cases.append(
                EdgeCase(scenario=match.group(1).strip(), expected_behavior=match.group(2).strip())
            )
    return cases
