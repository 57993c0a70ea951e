"""
Rule repository for the Compatibility Service.

Holds the rule catalog for one caller. Writers serialize on a lock; checks
read an immutable snapshot so a concurrent add/remove never changes the
rules seen by an in-flight check.
"""

import threading
from collections import Counter, defaultdict
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from shared.errors import DuplicateRuleError, NotFoundError, RuleValidationError
from shared.logging import get_logger
from .catalog import default_rules
from .models import (
    CompatibilityRule, ConditionOperator, RuleType, ServiceIdentifier, Severity, WILDCARD
)

DATABASE_RULE_SOURCES = frozenset({"database", "cache", "auth", "rbac"})
SAAS_RULE_SOURCES = frozenset({
    "frontend", "backend", "auth", "payment", "notification",
    "monitoring", "analytics", "rbac", "search",
})

MULTI_TENANT_TAG = "multi-tenant"

RuleInput = Union[CompatibilityRule, Dict[str, Any]]


@dataclass(frozen=True)
class RuleSnapshot:
    """Point-in-time view of the catalog."""
    rules: Tuple[CompatibilityRule, ...]
    revision: int

    @property
    def active_rules(self) -> Tuple[CompatibilityRule, ...]:
        return tuple(rule for rule in self.rules if rule.active)

    def __len__(self) -> int:
        return len(self.rules)


@dataclass
class MatrixIssue:
    """Single finding produced by catalog validation."""
    kind: str
    severity: Severity
    message: str
    rule_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "severity": self.severity.value,
            "message": self.message,
            "rule_ids": list(self.rule_ids),
        }


@dataclass
class MatrixValidationResult:
    """Catalog validation outcome. Warnings never make a catalog invalid."""
    valid: bool
    issues: List[MatrixIssue] = field(default_factory=list)
    warnings: List[MatrixIssue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "issues": [issue.to_dict() for issue in self.issues],
            "warnings": [warning.to_dict() for warning in self.warnings],
        }


class RuleRepository:
    """In-memory rule catalog."""

    def __init__(self, rules: Optional[Iterable[CompatibilityRule]] = None, strict: bool = False):
        self.logger = get_logger("compatibility.rule_repository")
        self.strict = strict
        self._lock = threading.Lock()
        self._rules: List[CompatibilityRule] = []
        self._revision = 0

        if rules is not None:
            for rule in rules:
                self.add_rule(rule)

    def load(self, rules: Optional[Iterable[CompatibilityRule]] = None) -> int:
        """Replace the catalog with ``rules`` (the default catalog when omitted)."""
        incoming = list(default_rules() if rules is None else rules)
        with self._lock:
            self._rules = []
            for rule in incoming:
                self._append(rule)
            self._touch()
            count = len(self._rules)

        self.logger.info("Rule catalog loaded", rule_count=count, strict=self.strict)
        return count

    def add_rule(self, rule: RuleInput) -> CompatibilityRule:
        """Add a rule. Duplicate IDs are kept unless the repository is strict."""
        rule = self._coerce(rule)
        with self._lock:
            self._append(rule)
            self._touch()

        self.logger.info("Rule added", rule_id=rule.id, name=rule.name, rule_type=rule.type.value)
        return rule

    def add_database_rule(self, rule: Optional[RuleInput] = None, **fields) -> CompatibilityRule:
        """Add a rule whose source is a data-layer service."""
        return self._add_typed(rule, fields, DATABASE_RULE_SOURCES, "database")

    def add_saas_rule(self, rule: Optional[RuleInput] = None, **fields) -> CompatibilityRule:
        """Add a rule whose source is an application-layer SaaS service."""
        return self._add_typed(rule, fields, SAAS_RULE_SOURCES, "saas")

    def remove_rule(self, rule_id: str) -> bool:
        """Remove every rule carrying ``rule_id``."""
        with self._lock:
            before = len(self._rules)
            self._rules = [rule for rule in self._rules if rule.id != rule_id]
            removed = before - len(self._rules)
            if removed:
                self._touch()

        if removed:
            self.logger.info("Rule removed", rule_id=rule_id, count=removed)
        return bool(removed)

    def set_active(self, rule_id: str, active: bool) -> CompatibilityRule:
        """Toggle a rule without removing it from the catalog."""
        with self._lock:
            updated = None
            for index, rule in enumerate(self._rules):
                if rule.id == rule_id:
                    updated = replace(rule, active=active)
                    self._rules[index] = updated
            if updated is None:
                raise NotFoundError("rule", rule_id)
            self._touch()

        self.logger.info("Rule state changed", rule_id=rule_id, active=active)
        return updated

    def get_rule(self, rule_id: str) -> Optional[CompatibilityRule]:
        """Get the first rule with ``rule_id``."""
        for rule in self.snapshot().rules:
            if rule.id == rule_id:
                return rule
        return None

    def get_rules_for(self, source_type: str, target_type: Optional[str] = None) -> List[CompatibilityRule]:
        """Active rules whose source (and optionally target) type matches."""
        def predicate(rule: CompatibilityRule) -> bool:
            if not _type_matches(rule.source.type, source_type):
                return False
            if target_type is None:
                return True
            return rule.target is not None and _type_matches(rule.target.type, target_type)

        return self._query(predicate)

    def get_rules_for_provider(self, provider: str) -> List[CompatibilityRule]:
        """Active rules naming ``provider`` on either side."""
        def predicate(rule: CompatibilityRule) -> bool:
            if rule.source.provider == provider:
                return True
            return rule.target is not None and rule.target.provider == provider

        return self._query(predicate)

    def get_rules_by_tag(self, tag: str) -> List[CompatibilityRule]:
        return self._query(lambda rule: tag in rule.tags)

    def get_rules_by_category(self, category: str) -> List[CompatibilityRule]:
        return self._query(lambda rule: rule.category == category)

    def get_rules_for_strategy(self, strategy: str) -> List[CompatibilityRule]:
        """Active rules tied to a tenancy strategy by tag or by condition."""
        def predicate(rule: CompatibilityRule) -> bool:
            if strategy in rule.tags or strategy in rule.source.tags:
                return True
            return any(
                c.key == "tenancyStrategy"
                and c.operator == ConditionOperator.EQUALS
                and c.value == strategy
                for c in rule.conditions
            )

        return self._query(predicate)

    def get_critical_rules(self) -> List[CompatibilityRule]:
        return self._query(lambda rule: rule.severity == Severity.CRITICAL)

    def get_rules_for_scale(self, max_tenants: int) -> List[CompatibilityRule]:
        """Active rules that apply at ``max_tenants``; rules without a tenant-count threshold always do."""
        def predicate(rule: CompatibilityRule) -> bool:
            thresholds = [
                c.value for c in rule.conditions
                if c.key == "maxTenants" and c.operator == ConditionOperator.VERSION
            ]
            if not thresholds:
                return True
            return any(t.compare(max_tenants) for t in thresholds)

        return self._query(predicate)

    def snapshot(self) -> RuleSnapshot:
        """Immutable copy of the catalog for one check."""
        with self._lock:
            return RuleSnapshot(rules=tuple(self._rules), revision=self._revision)

    def validate_matrix(self) -> MatrixValidationResult:
        """Check the catalog for duplicate IDs, dependency cycles and tenancy coverage."""
        rules = self.snapshot().rules
        issues = self._find_duplicates(rules) + self._find_cycles(rules)
        warnings = self._find_coverage_gaps(rules)

        result = MatrixValidationResult(valid=not issues, issues=issues, warnings=warnings)
        self.logger.info(
            "Rule catalog validated",
            valid=result.valid,
            issue_count=len(issues),
            warning_count=len(warnings),
        )
        return result

    def get_statistics(self) -> Dict[str, Any]:
        """Get catalog statistics."""
        snapshot = self.snapshot()
        rules = snapshot.rules
        providers = set()
        for rule in rules:
            for side in (rule.source, rule.target):
                if side is not None and side.provider != WILDCARD:
                    providers.add(side.provider)

        return {
            "total_rules": len(rules),
            "active_rules": sum(1 for rule in rules if rule.active),
            "inactive_rules": sum(1 for rule in rules if not rule.active),
            "deprecated_rules": sum(1 for rule in rules if rule.deprecated),
            "by_type": dict(Counter(rule.type.value for rule in rules)),
            "by_severity": dict(Counter(rule.severity.value for rule in rules)),
            "by_category": dict(Counter(rule.category or "uncategorized" for rule in rules)),
            "providers": sorted(providers),
            "revision": snapshot.revision,
        }

    def __len__(self) -> int:
        with self._lock:
            return len(self._rules)

    def _add_typed(
        self,
        rule: Optional[RuleInput],
        fields: Dict[str, Any],
        allowed: frozenset,
        domain: str
    ) -> CompatibilityRule:
        rule = self._coerce(rule if rule is not None else fields)
        if rule.source.type not in allowed:
            raise RuleValidationError(
                f"Source type '{rule.source.type}' is not allowed for {domain} rules",
                {"rule_id": rule.id, "source_type": rule.source.type, "allowed": sorted(allowed)}
            )
        return self.add_rule(rule)

    @staticmethod
    def _coerce(rule: RuleInput) -> CompatibilityRule:
        if isinstance(rule, CompatibilityRule):
            return rule
        if not isinstance(rule, dict):
            raise RuleValidationError("Rule must be a CompatibilityRule or a mapping")
        if isinstance(rule.get("source"), ServiceIdentifier):
            return CompatibilityRule(**rule)
        try:
            return CompatibilityRule.from_dict(rule)
        except (KeyError, TypeError) as e:
            raise RuleValidationError(f"Malformed rule definition: {e}", {"rule_id": rule.get("id")})

    def _append(self, rule: CompatibilityRule) -> None:
        if any(existing.id == rule.id for existing in self._rules):
            if self.strict:
                raise DuplicateRuleError(rule.id)
            self.logger.warning("Duplicate rule ID added", rule_id=rule.id)
        self._rules.append(rule)

    def _touch(self) -> None:
        self._revision += 1

    def _query(self, predicate) -> List[CompatibilityRule]:
        rules = [rule for rule in self.snapshot().rules if rule.active and predicate(rule)]
        rules.sort(key=lambda r: r.priority, reverse=True)
        return rules

    @staticmethod
    def _find_duplicates(rules: Iterable[CompatibilityRule]) -> List[MatrixIssue]:
        counts = Counter(rule.id for rule in rules)
        return [
            MatrixIssue(
                kind="duplicate-id",
                severity=Severity.ERROR,
                message=f"Duplicate rule ID: {rule_id}",
                rule_ids=[rule_id],
            )
            for rule_id, count in counts.items() if count > 1
        ]

    @staticmethod
    def _find_cycles(rules: Iterable[CompatibilityRule]) -> List[MatrixIssue]:
        graph: Dict[str, List[str]] = defaultdict(list)
        edge_rules: Dict[Tuple[str, str], List[str]] = defaultdict(list)
        for rule in rules:
            if rule.type not in (RuleType.REQUIRE, RuleType.DEPEND) or rule.target is None:
                continue
            edge = (rule.source.key, rule.target.key)
            if edge[1] not in graph[edge[0]]:
                graph[edge[0]].append(edge[1])
            edge_rules[edge].append(rule.id)

        white, grey, black = 0, 1, 2
        color: Dict[str, int] = defaultdict(int)
        stack: List[str] = []
        seen = set()
        cycles: List[List[str]] = []

        def visit(node: str) -> None:
            color[node] = grey
            stack.append(node)
            for nxt in graph.get(node, ()):
                if color[nxt] == grey:
                    cycle = stack[stack.index(nxt):]
                    pivot = cycle.index(min(cycle))
                    canonical = tuple(cycle[pivot:] + cycle[:pivot])
                    if canonical not in seen:
                        seen.add(canonical)
                        cycles.append(list(canonical))
                elif color[nxt] == white:
                    visit(nxt)
            stack.pop()
            color[node] = black

        for node in list(graph):
            if color[node] == white:
                visit(node)

        issues = []
        for cycle in cycles:
            path = cycle + [cycle[0]]
            rule_ids: List[str] = []
            for edge in zip(path, path[1:]):
                rule_ids.extend(edge_rules[edge])
            issues.append(MatrixIssue(
                kind="circular-dependency",
                severity=Severity.ERROR,
                message="Circular dependency: " + " -> ".join(path),
                rule_ids=rule_ids,
            ))
        return issues

    @staticmethod
    def _find_coverage_gaps(rules: Iterable[CompatibilityRule]) -> List[MatrixIssue]:
        rules = list(rules)
        database_providers = []
        for rule in rules:
            provider = rule.source.provider
            if rule.source.type == "database" and provider != WILDCARD and provider not in database_providers:
                database_providers.append(provider)

        covered = set()
        for rule in rules:
            if MULTI_TENANT_TAG not in rule.tags:
                continue
            covered.add(rule.source.provider)
            if rule.target is not None:
                covered.add(rule.target.provider)

        return [
            MatrixIssue(
                kind="coverage",
                severity=Severity.WARNING,
                message=f"Database provider '{provider}' has no multi-tenant rules",
            )
            for provider in database_providers if provider not in covered
        ]


def _type_matches(rule_type: str, wanted: str) -> bool:
    return rule_type == WILDCARD or rule_type == wanted
