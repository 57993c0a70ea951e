"""
Rule data models for the Compatibility Service.
"""

import re
from typing import Dict, Any, Optional, List, FrozenSet, Iterable, Union
from dataclasses import dataclass, field
from enum import Enum

from shared.errors import RuleValidationError

WILDCARD = "*"


class RuleType(str, Enum):
    """Compatibility rule types."""
    REQUIRE = "require"
    CONFLICT = "conflict"
    RECOMMEND = "recommend"
    EXCLUDE = "exclude"
    REPLACE = "replace"
    ENHANCE = "enhance"
    DEPEND = "depend"


class Severity(str, Enum):
    """Ordinal severity (critical > error > warning > info > suggestion)."""
    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    SUGGESTION = "suggestion"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.ERROR: 3,
    Severity.WARNING: 2,
    Severity.INFO: 1,
    Severity.SUGGESTION: 0,
}


class ConditionLogic(str, Enum):
    """How a rule's condition list is combined."""
    AND = "AND"
    OR = "OR"


class ConditionOperator(str, Enum):
    """Condition operators."""
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    REGEX = "regex"
    VERSION = "version"


class Comparator(str, Enum):
    """Comparators for numeric thresholds."""
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    EQ = "=="


def _coerce_enum(enum_cls, value, what: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = [member.value for member in enum_cls]
        raise RuleValidationError(
            f"Invalid {what}: {value!r}",
            {"field": what, "value": value, "allowed": allowed}
        )


def extract_number(value: Any) -> Optional[int]:
    """Strip every non-digit character and read what is left as an integer."""
    if isinstance(value, bool):
        return None
    digits = re.sub(r"[^\d]", "", str(value))
    if not digits:
        return None
    return int(digits)


@dataclass(frozen=True)
class Threshold:
    """Typed numeric constraint used by the ``version`` operator."""
    comparator: Comparator
    value: int

    @classmethod
    def parse(cls, text: Union[str, int, float]) -> "Threshold":
        """Parse the catalog form (``">100"``, ``"<=5"``, ``"42"``).

        Bare numbers are read digit by digit like context values, so ``2.5``
        becomes ``25`` on both sides.
        """
        raw = str(text).strip()
        comparator = Comparator.EQ
        for prefix in (">=", "<=", "==", ">", "<", "="):
            if raw.startswith(prefix):
                comparator = Comparator.EQ if prefix in ("==", "=") else Comparator(prefix)
                raw = raw[len(prefix):]
                break

        number = extract_number(raw)
        if number is None:
            raise RuleValidationError(
                f"Threshold has no numeric part: {text!r}",
                {"field": "value", "value": str(text)}
            )
        return cls(comparator, number)

    def compare(self, number: int) -> bool:
        if self.comparator == Comparator.GT:
            return number > self.value
        if self.comparator == Comparator.GTE:
            return number >= self.value
        if self.comparator == Comparator.LT:
            return number < self.value
        if self.comparator == Comparator.LTE:
            return number <= self.value
        return number == self.value

    def __str__(self) -> str:
        return f"{self.comparator.value}{self.value}"


@dataclass(frozen=True)
class ServiceIdentifier:
    """A concrete selected service, or a matching pattern when type/provider is ``*``."""
    type: str
    provider: str
    tags: FrozenSet[str] = frozenset()
    environment: FrozenSet[str] = frozenset()
    version_constraint: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "tags", frozenset(self.tags))
        object.__setattr__(self, "environment", frozenset(self.environment))

    @classmethod
    def create(
        cls,
        type: str,
        provider: str,
        tags: Iterable[str] = (),
        environment: Iterable[str] = (),
        version_constraint: Optional[str] = None
    ) -> "ServiceIdentifier":
        return cls(type, provider, frozenset(tags), frozenset(environment), version_constraint)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServiceIdentifier":
        return cls.create(
            data["type"],
            data["provider"],
            tags=data.get("tags") or (),
            environment=data.get("environment") or (),
            version_constraint=data.get("version_constraint") or data.get("versionConstraint")
        )

    @property
    def key(self) -> str:
        return f"{self.type}:{self.provider}"

    @property
    def is_pattern(self) -> bool:
        return self.type == WILDCARD or self.provider == WILDCARD

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.type,
            "provider": self.provider,
            "tags": sorted(self.tags),
            "environment": sorted(self.environment),
        }
        if self.version_constraint:
            data["version_constraint"] = self.version_constraint
        return data


@dataclass
class Condition:
    """A named check evaluated against the caller-supplied context map."""
    key: str
    operator: ConditionOperator
    value: Any
    description: Optional[str] = None

    def __post_init__(self):
        if not self.key:
            raise RuleValidationError("Condition key must not be empty")
        self.operator = _coerce_enum(ConditionOperator, self.operator, "operator")

        if self.operator == ConditionOperator.VERSION and not isinstance(self.value, Threshold):
            self.value = Threshold.parse(self.value)
        elif self.operator == ConditionOperator.REGEX and not isinstance(self.value, str):
            raise RuleValidationError(
                "Regex condition value must be a string",
                {"key": self.key, "value": self.value}
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Condition":
        return cls(
            key=data["key"],
            operator=data["operator"],
            value=data.get("value"),
            description=data.get("description")
        )

    def to_dict(self) -> Dict[str, Any]:
        value = str(self.value) if isinstance(self.value, Threshold) else self.value
        return {
            "key": self.key,
            "operator": self.operator.value,
            "value": value,
            "description": self.description
        }


@dataclass
class CompatibilityRule:
    """Declarative statement about a source/target service pairing."""
    id: str
    name: str
    type: RuleType
    severity: Severity
    source: ServiceIdentifier
    target: Optional[ServiceIdentifier] = None
    conditions: List[Condition] = field(default_factory=list)
    condition_logic: ConditionLogic = ConditionLogic.AND
    priority: int = 50
    weight: float = 1.0
    active: bool = True
    deprecated: bool = False
    description: str = ""
    reason: str = ""
    resolution: Optional[str] = None
    category: Optional[str] = None
    tags: FrozenSet[str] = frozenset()
    version: str = "1.0.0"

    def __post_init__(self):
        if not self.id:
            raise RuleValidationError("Rule ID must not be empty")
        if not self.name:
            raise RuleValidationError("Rule name must not be empty", {"rule_id": self.id})

        self.type = _coerce_enum(RuleType, self.type, "type")
        self.severity = _coerce_enum(Severity, self.severity, "severity")
        self.condition_logic = _coerce_enum(ConditionLogic, self.condition_logic, "condition_logic")

        if not isinstance(self.source, ServiceIdentifier):
            raise RuleValidationError("Rule source must be a service identifier", {"rule_id": self.id})
        if self.target is not None and not isinstance(self.target, ServiceIdentifier):
            raise RuleValidationError("Rule target must be a service identifier", {"rule_id": self.id})

        if not 0 <= self.priority <= 100:
            raise RuleValidationError(
                "Rule priority must be between 0 and 100",
                {"rule_id": self.id, "priority": self.priority}
            )
        if not 0.0 <= self.weight <= 1.0:
            raise RuleValidationError(
                "Rule weight must be between 0 and 1",
                {"rule_id": self.id, "weight": self.weight}
            )

        self.conditions = [
            c if isinstance(c, Condition) else Condition.from_dict(c)
            for c in self.conditions
        ]
        self.tags = frozenset(self.tags)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompatibilityRule":
        target = data.get("target")
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            type=data.get("type"),
            severity=data.get("severity"),
            source=ServiceIdentifier.from_dict(data["source"]),
            target=ServiceIdentifier.from_dict(target) if target else None,
            conditions=[Condition.from_dict(c) for c in data.get("conditions", [])],
            condition_logic=data.get("condition_logic", data.get("conditionLogic", "AND")),
            priority=data.get("priority", 50),
            weight=data.get("weight", 1.0),
            active=data.get("active", True),
            deprecated=data.get("deprecated", False),
            description=data.get("description", ""),
            reason=data.get("reason", ""),
            resolution=data.get("resolution"),
            category=data.get("category"),
            tags=frozenset(data.get("tags", ())),
            version=data.get("version", "1.0.0")
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "severity": self.severity.value,
            "source": self.source.to_dict(),
            "target": self.target.to_dict() if self.target else None,
            "conditions": [c.to_dict() for c in self.conditions],
            "condition_logic": self.condition_logic.value,
            "priority": self.priority,
            "weight": self.weight,
            "active": self.active,
            "deprecated": self.deprecated,
            "description": self.description,
            "reason": self.reason,
            "resolution": self.resolution,
            "category": self.category,
            "tags": sorted(self.tags),
            "version": self.version
        }
