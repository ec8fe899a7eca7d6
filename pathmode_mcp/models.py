"""Data models for the Pathmode intent layer.

Intents, relations, workspaces and the records produced by graph analysis.
Payloads arriving from the API or from local files are loosely typed JSON;
they are validated here, at the boundary, so the rest of the package works
with fully typed values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .errors import IntentValidationError

logger = logging.getLogger("pathmode.models")

DEPENDS_ON = "depends_on"
UNTITLED = "Untitled"


class IntentStatus(str, Enum):
    """Lifecycle of an intent, in order."""

    DRAFT = "draft"
    VALIDATED = "validated"
    APPROVED = "approved"
    SHIPPED = "shipped"
    VERIFIED = "verified"

    @classmethod
    def parse(cls, value: Any, intent_id: Optional[str] = None) -> "IntentStatus":
        """Coerce a raw status value, raising IntentValidationError when unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(status.value for status in cls)
            raise IntentValidationError(
                f"Invalid status '{value}' (expected one of: {allowed})",
                intent_id=intent_id,
            ) from None

    @property
    def is_unstarted(self) -> bool:
        """Draft and validated intents have not been approved for work yet."""
        return self in (IntentStatus.DRAFT, IntentStatus.VALIDATED)


@dataclass(frozen=True, slots=True)
class Relation:
    """Directed, typed link from one intent to another."""

    target_id: str
    type: str

    @property
    def is_dependency(self) -> bool:
        return self.type == DEPENDS_ON

    def to_dict(self) -> Dict[str, str]:
        return {"targetId": self.target_id, "type": self.type}

    @classmethod
    def from_dict(cls, data: Any, intent_id: Optional[str] = None) -> "Relation":
        """Create from the API representation ``{"targetId": ..., "type": ...}``."""
        if not isinstance(data, Mapping):
            raise IntentValidationError(
                f"Relation must be a mapping, got {type(data).__name__}",
                intent_id=intent_id,
            )
        target_id = data.get("targetId")
        relation_type = data.get("type")
        if not target_id or not isinstance(target_id, str):
            raise IntentValidationError("Relation is missing 'targetId'", intent_id=intent_id)
        if not relation_type or not isinstance(relation_type, str):
            raise IntentValidationError("Relation is missing 'type'", intent_id=intent_id)
        return cls(target_id=target_id, type=relation_type)


def parse_relations(items: List[Any], intent_id: Optional[str] = None) -> List[Relation]:
    """Build relations from raw records, dropping the malformed ones."""
    relations = []
    for item in items:
        try:
            relations.append(Relation.from_dict(item, intent_id))
        except IntentValidationError as e:
            logger.debug(f"Dropping relation {item!r} of intent {intent_id}: {e}")
    return relations


@dataclass(frozen=True, slots=True)
class EdgeCase:
    """A scenario the implementation must handle and how it should behave."""

    scenario: str
    expected_behavior: str
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        data = {"scenario": self.scenario, "expectedBehavior": self.expected_behavior}
        if self.id is not None:
            data = {"id": self.id, **data}
        return data

    @classmethod
    def from_dict(cls, data: Any, intent_id: Optional[str] = None) -> "EdgeCase":
        if not isinstance(data, Mapping):
            raise IntentValidationError("Edge case must be a mapping", intent_id=intent_id)
        return cls(
            scenario=str(data.get("scenario", "")),
            expected_behavior=str(data.get("expectedBehavior", "")),
            id=data.get("id"),
        )


# Keys understood by Intent.from_dict; anything else is kept in ``extras``.
_INTENT_KEYS = frozenset(
    {
        "id",
        "status",
        "userGoal",
        "objective",
        "relations",
        "outcomes",
        "constraints",
        "edgeCases",
        "healthMetrics",
        "verification",
        "stageName",
        "severity",
        "version",
        "workspaceId",
        "createdAt",
        "updatedAt",
        "source",
    }
)


def _string_list(value: Any, name: str, intent_id: Optional[str]) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise IntentValidationError(f"'{name}' must be a list", intent_id=intent_id)
    return [str(item) for item in value]


@dataclass(slots=True)
class Intent:
    """A structured unit of work with a lifecycle status and relations."""

    id: str
    status: IntentStatus = IntentStatus.DRAFT
    user_goal: Optional[str] = None
    objective: str = ""
    relations: List[Relation] = field(default_factory=list)
    outcomes: List[str] = field(default_factory=list)
    constraints: List[str] = field(default_factory=list)
    edge_cases: List[EdgeCase] = field(default_factory=list)
    health_metrics: List[str] = field(default_factory=list)
    verification: Dict[str, Any] = field(default_factory=dict)
    stage_name: Optional[str] = None
    severity: Optional[str] = None
    version: int = 1
    workspace_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    source: str = "cloud"
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_goal(self) -> str:
        """Label used in analysis output."""
        return self.user_goal or UNTITLED

    def dependency_ids(self) -> List[str]:
        """Targets of this intent's ``depends_on`` relations, in order."""
        return [relation.target_id for relation in self.relations if relation.is_dependency]

    def searchable_text(self) -> str:
        parts = [self.user_goal or "", self.objective, *self.outcomes, *self.constraints]
        return " ".join(parts).lower()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase representation served to agents."""
        data: Dict[str, Any] = dict(self.extras)
        data.update(
            {
                "id": self.id,
                "status": self.status.value,
                "userGoal": self.user_goal,
                "objective": self.objective,
                "outcomes": list(self.outcomes),
                "constraints": list(self.constraints),
                "edgeCases": [edge_case.to_dict() for edge_case in self.edge_cases],
                "healthMetrics": list(self.health_metrics),
                "verification": dict(self.verification),
                "relations": [relation.to_dict() for relation in self.relations],
                "version": self.version,
                "source": self.source,
            }
        )
        optional = {
            "stageName": self.stage_name,
            "severity": self.severity,
            "workspaceId": self.workspace_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data

    @classmethod
    def from_dict(cls, data: Any, *, source: str = "cloud") -> "Intent":
        """Validate a raw payload and build an Intent.

        Raises:
            IntentValidationError: if the id is missing, the status is unknown
                or a list field has the wrong shape. Malformed relation records
                are dropped instead.
        """
        if not isinstance(data, Mapping):
            raise IntentValidationError(f"Intent must be a mapping, got {type(data).__name__}")

        intent_id = data.get("id")
        if not intent_id or not isinstance(intent_id, str):
            raise IntentValidationError("Intent is missing an 'id'")

        relations_raw = data.get("relations") or []
        if not isinstance(relations_raw, list):
            raise IntentValidationError("'relations' must be a list", intent_id=intent_id)

        edge_cases_raw = data.get("edgeCases") or []
        if not isinstance(edge_cases_raw, list):
            raise IntentValidationError("'edgeCases' must be a list", intent_id=intent_id)

        verification = data.get("verification") or {}
        if not isinstance(verification, Mapping):
            raise IntentValidationError("'verification' must be a mapping", intent_id=intent_id)

        try:
            version = int(data.get("version") or 1)
        except (TypeError, ValueError):
            raise IntentValidationError(
                f"Invalid version '{data.get('version')}'", intent_id=intent_id
            ) from None

        user_goal = data.get("userGoal")
        return cls(
            id=intent_id,
            status=IntentStatus.parse(data.get("status") or IntentStatus.DRAFT, intent_id),
            user_goal=str(user_goal) if user_goal else None,
            objective=str(data.get("objective") or ""),
            relations=parse_relations(relations_raw, intent_id),
            outcomes=_string_list(data.get("outcomes"), "outcomes", intent_id),
            constraints=_string_list(data.get("constraints"), "constraints", intent_id),
            edge_cases=[EdgeCase.from_dict(item, intent_id) for item in edge_cases_raw],
            health_metrics=_string_list(data.get("healthMetrics"), "healthMetrics", intent_id),
            verification=dict(verification),
            stage_name=data.get("stageName"),
            severity=data.get("severity"),
            version=version,
            workspace_id=data.get("workspaceId"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
            source=str(data.get("source") or source),
            extras={key: value for key, value in data.items() if key not in _INTENT_KEYS},
        )

    def summary(self) -> Dict[str, Any]:
        """Short form used in search results."""
        return {
            "id": self.id,
            "userGoal": self.user_goal,
            "objective": self.objective,
            "status": self.status.value,
            "stageName": self.stage_name,
        }

    def graph_node(self) -> Dict[str, Any]:
        """Form used by the ``intent://graph`` resource."""
        return {
            "id": self.id,
            "userGoal": self.user_goal,
            "status": self.status.value,
            "relations": [relation.to_dict() for relation in self.relations],
        }


@dataclass(slots=True)
class ConstitutionRule:
    """Mandatory workspace constraint."""

    id: str
    category: str
    text: str
    is_active: bool = True
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "text": self.text,
            "isActive": self.is_active,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConstitutionRule":
        return cls(
            id=str(data.get("id", "")),
            category=str(data.get("category", "")),
            text=str(data.get("text", "")),
            is_active=bool(data.get("isActive", True)),
            created_at=data.get("createdAt"),
        )


@dataclass(slots=True)
class PathmodeWorkspace:
    """Workspace details: strategy and constitution."""

    id: str
    name: str
    url_key: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    strategy: Optional[Dict[str, Any]] = None
    constitution_rules: List[ConstitutionRule] = field(default_factory=list)

    def active_rules(self) -> List[ConstitutionRule]:
        return [rule for rule in self.constitution_rules if rule.is_active]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "urlKey": self.url_key,
            "tags": list(self.tags),
            "strategy": self.strategy,
            "constitutionRules": [rule.to_dict() for rule in self.constitution_rules],
        }

    def strategy_view(self) -> Dict[str, Any]:
        """Form used by the ``intent://workspace-strategy`` resource."""
        return {
            "name": self.name,
            "strategy": self.strategy,
            "constitutionRules": [rule.to_dict() for rule in self.active_rules()],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "PathmodeWorkspace":
        if not isinstance(data, Mapping):
            raise IntentValidationError("Workspace payload must be a mapping")
        rules = data.get("constitutionRules") or []
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            url_key=data.get("urlKey"),
            tags=[str(tag) for tag in data.get("tags") or []],
            strategy=data.get("strategy"),
            constitution_rules=[
                ConstitutionRule.from_dict(rule) for rule in rules if isinstance(rule, Mapping)
            ],
        )


@dataclass(slots=True)
class Bottleneck:
    """An intent that three or more other intents depend on."""

    id: str
    user_goal: str
    dependent_count: int
    status: IntentStatus

    @property
    def severity(self) -> str:
        return "critical" if self.status.is_unstarted else "warning"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userGoal": self.user_goal,
            "dependentCount": self.dependent_count,
            "status": self.status.value,
        }


@dataclass(slots=True)
class Risk:
    """Flat risk entry reported by the ``risks`` analysis."""

    type: str
    severity: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "severity": self.severity, "message": self.message}
