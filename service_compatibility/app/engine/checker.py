"""
Compatibility checker.

Runs catalog rules over every unordered pair of selected services,
infers missing dependencies, and scores the result. The database check
adds the domain pass from ``DatabaseCompatibilityEngine`` on top.
"""

import time
from itertools import combinations
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..rules.catalog import CATALOG_VERSION
from ..rules.conditions import evaluate_conditions
from ..rules.matcher import matches, matches_any
from ..rules.models import CompatibilityRule, RuleType, ServiceIdentifier, Severity, WILDCARD
from ..rules.repository import RuleRepository
from .database import DatabaseCompatibilityEngine
from .models import (
    CheckOptions, CheckSummary, CompatibilityCheckResult, CompatibilityIssue,
    DatabaseCompatibilityContext, IssueType, RecommendationType, Resolution,
    ServiceRecommendation
)

SEVERITY_PENALTY = {
    Severity.CRITICAL: 25,
    Severity.ERROR: 15,
    Severity.WARNING: 5,
}
RECOMMENDATION_BONUS = 2
MAX_RECOMMENDATION_BONUS = 10

MISSING_PAIR_PENALTY = 0.3
SPARSE_RULES_PENALTY = 0.1
MIN_CONFIDENCE = 0.5

ESSENTIAL_SAAS_SERVICES = {
    "database": ("postgresql", ["ACID compliance", "Multi-tenant support", "JSON capabilities"]),
    "auth": ("better-auth", ["Type-safe authentication", "OAuth support", "Session management"]),
    "payment": ("stripe", ["Secure payment processing", "Subscription management", "Global support"]),
    "notification": ("resend", ["Reliable email delivery", "Template management", "Analytics"]),
    "monitoring": ("sentry", ["Error tracking", "Performance monitoring", "Real-time alerts"]),
}

# (service type present, required type absent) -> suggested provider
_IMPLIED_DEPENDENCIES = [
    ("auth", "database", "postgresql", "auth-required"),
    ("rbac", "auth", "better-auth", "rbac-required"),
    ("payment", "database", "postgresql", "payment-required"),
]


def calculate_score(issues: Iterable[CompatibilityIssue], recommendation_count: int) -> int:
    """100, minus a penalty per issue severity, plus a capped bonus for recommendations."""
    score = 100
    for issue in issues:
        score -= SEVERITY_PENALTY.get(issue.severity, 0)
    score += min(recommendation_count * RECOMMENDATION_BONUS, MAX_RECOMMENDATION_BONUS)
    return max(0, min(100, score))


def calculate_confidence(summary: CheckSummary, rules_applied: int) -> float:
    confidence = 1.0
    if summary.missing_pairs and summary.total_pairs:
        confidence -= MISSING_PAIR_PENALTY * summary.missing_pairs / summary.total_pairs
    if rules_applied < summary.total_services:
        confidence -= SPARSE_RULES_PENALTY
    return max(MIN_CONFIDENCE, min(1.0, confidence))


class CompatibilityChecker:
    """Checks a selection of services against a rule repository."""

    def __init__(
        self,
        repository: RuleRepository,
        database_engine: Optional[DatabaseCompatibilityEngine] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.logger = get_logger("compatibility.checker")
        self.repository = repository
        self.database_engine = database_engine or DatabaseCompatibilityEngine()
        self.metrics = metrics

    def check_compatibility(
        self,
        services: Sequence[ServiceIdentifier],
        options: Optional[CheckOptions] = None
    ) -> CompatibilityCheckResult:
        """Pairwise rule check over ``services``."""
        start_time = time.perf_counter()
        result = self._run(list(services), options or CheckOptions())
        self._record("pairwise", result, start_time)
        return result

    def check_database_compatibility(
        self,
        services: Sequence[ServiceIdentifier],
        db_context: DatabaseCompatibilityContext,
        options: Optional[CheckOptions] = None
    ) -> CompatibilityCheckResult:
        """Pairwise check plus database tenancy, scaling and compliance validation."""
        start_time = time.perf_counter()
        services = list(services)
        options = options or CheckOptions(environment="production")
        merged_context = {**db_context.to_condition_context(), **options.context}
        pairwise_options = CheckOptions(
            environment=options.environment,
            include_recommendations=True,
            include_warnings=True,
            context=merged_context,
        )

        result = self._run(services, pairwise_options)
        if result.error is None:
            try:
                self._apply_domain_pass(result, services, db_context)
            except Exception as e:
                self.logger.error("Database compatibility check failed", error=str(e))
                self._degrade(result, services, e)
            else:
                self._apply_options(result, options)

        self._record("database", result, start_time)
        return result

    def validate_saas_bundle(
        self,
        services: Sequence[ServiceIdentifier],
        db_context: DatabaseCompatibilityContext
    ) -> CompatibilityCheckResult:
        """Database check plus ``add`` recommendations for missing essential SaaS services."""
        services = list(services)
        result = self.check_database_compatibility(services, db_context)
        present = {service.type for service in services}

        for service_type, (provider, benefits) in ESSENTIAL_SAAS_SERVICES.items():
            if service_type in present:
                continue
            result.recommendations.append(ServiceRecommendation(
                type=RecommendationType.ADD,
                service=ServiceIdentifier.create(service_type, provider, ["saas", "essential"]),
                reason=f"{service_type} service is essential for SaaS applications",
                benefits=list(benefits),
                effort="medium",
                impact="high",
                priority=95,
            ))

        result.summary.recommendation_count = len(result.recommendations)
        return result

    def saas_readiness(self, services: Sequence[ServiceIdentifier]) -> Dict[str, Any]:
        """Readiness score of a service combination for production SaaS."""
        def has(predicate) -> bool:
            return any(predicate(s) for s in services)

        def is_networked_database(s: ServiceIdentifier) -> bool:
            return s.type == "database" and not self.database_engine.profile(s).embedded

        factors = {
            "essential_services": (
                (15 if has(is_networked_database) else 0)
                + (15 if has(lambda s: s.type == "auth") else 0)
                + (10 if has(lambda s: s.type == "frontend") else 0)
            ),
            "scalability": (
                (10 if has(lambda s: s.type == "cache") else 0)
                + (10 if has(lambda s: s.provider == "postgresql") else 0)
            ),
            "security": (
                (10 if has(lambda s: s.type == "rbac") else 0)
                + (10 if has(lambda s: "multi-tenant" in s.tags) else 0)
            ),
            "observability": (
                (5 if has(lambda s: s.type == "monitoring") else 0)
                + (5 if has(lambda s: s.type == "analytics") else 0)
            ),
            "business_logic": (
                (5 if has(lambda s: s.type == "payment") else 0)
                + (5 if has(lambda s: s.type == "notification") else 0)
            ),
        }
        score = sum(factors.values())

        if score >= 80:
            readiness = "enterprise-ready"
        elif score >= 60:
            readiness = "production-ready"
        elif score >= 40:
            readiness = "basic"
        else:
            readiness = "not-ready"

        return {"score": score, "readiness": readiness, "factors": factors}

    def _run(self, services: List[ServiceIdentifier], options: CheckOptions) -> CompatibilityCheckResult:
        snapshot = self.repository.snapshot()
        result = CompatibilityCheckResult(
            summary=CheckSummary(total_services=len(services)),
            matrix_version=f"{CATALOG_VERSION}-r{snapshot.revision}",
        )

        try:
            context = options.evaluation_context()
            rules = snapshot.active_rules

            for service_a, service_b in combinations(services, 2):
                issues_before = len(result.issues)
                applied = self._check_pair(service_a, service_b, rules, context, result)
                if applied == 0:
                    result.summary.missing_pairs += 1
                elif any(
                    issue.severity == Severity.CRITICAL
                    for issue in result.issues[issues_before:]
                ):
                    result.summary.conflicting_pairs += 1
                else:
                    result.summary.compatible_pairs += 1

            result.missing_dependencies = self._infer_dependencies(services, rules, context)
            self._finalize(result)
            self._apply_options(result, options)

        except Exception as e:
            self.logger.error("Compatibility check failed", error=str(e), service_count=len(services))
            self._degrade(result, services, e)

        return result

    def _check_pair(
        self,
        service_a: ServiceIdentifier,
        service_b: ServiceIdentifier,
        rules: Tuple[CompatibilityRule, ...],
        context: Dict[str, Any],
        result: CompatibilityCheckResult
    ) -> int:
        applied = 0
        for rule in rules:
            if not self._is_applicable(rule, service_a, service_b, context):
                continue
            applied += 1

            if rule.type == RuleType.CONFLICT:
                result.issues.append(CompatibilityIssue(
                    type=IssueType.CONFLICT,
                    severity=rule.severity,
                    message=rule.description,
                    source_service=service_a,
                    target_service=service_b,
                    rule_id=rule.id,
                    rule_name=rule.name,
                    resolution=Resolution(steps=[rule.resolution]) if rule.resolution else None,
                ))
            elif rule.type == RuleType.RECOMMEND:
                result.recommendations.append(ServiceRecommendation(
                    type=RecommendationType.CONFIGURE,
                    service=service_a,
                    reason=rule.reason,
                    benefits=[rule.description],
                    priority=rule.priority,
                ))
            elif rule.severity == Severity.WARNING:
                result.warnings.append(CompatibilityIssue(
                    type=IssueType(rule.type.value),
                    severity=rule.severity,
                    message=rule.description,
                    source_service=service_a,
                    target_service=service_b,
                    rule_id=rule.id,
                    rule_name=rule.name,
                ))

        result.rules_applied += applied
        return applied

    @staticmethod
    def _is_applicable(
        rule: CompatibilityRule,
        service_a: ServiceIdentifier,
        service_b: ServiceIdentifier,
        context: Dict[str, Any]
    ) -> bool:
        if not rule.active:
            return False
        if not matches_any(rule.source, service_a, service_b):
            return False
        if rule.target is not None and not matches_any(rule.target, service_a, service_b):
            return False
        return evaluate_conditions(rule.conditions, rule.condition_logic, context)

    @staticmethod
    def _infer_dependencies(
        services: List[ServiceIdentifier],
        rules: Tuple[CompatibilityRule, ...],
        context: Dict[str, Any]
    ) -> List[ServiceIdentifier]:
        present = {service.type for service in services}
        missing: List[ServiceIdentifier] = []

        def add(candidate: ServiceIdentifier) -> None:
            for existing in missing:
                if existing.type == candidate.type and (
                    candidate.provider == WILDCARD or existing.provider == candidate.provider
                ):
                    return
            missing.append(candidate)

        for have, need, provider, tag in _IMPLIED_DEPENDENCIES:
            if have in present and need not in present:
                add(ServiceIdentifier.create(need, provider, [tag]))

        for rule in rules:
            if rule.type != RuleType.DEPEND or rule.target is None:
                continue
            if not any(matches(rule.source, service) for service in services):
                continue
            if any(matches(rule.target, service) for service in services):
                continue
            if evaluate_conditions(rule.conditions, rule.condition_logic, context):
                add(rule.target)

        return missing

    @staticmethod
    def _finalize(result: CompatibilityCheckResult) -> None:
        result.critical_issues = [i for i in result.issues if i.severity == Severity.CRITICAL]
        result.compatible = not result.critical_issues
        result.summary.recommendation_count = len(result.recommendations)
        result.overall_score = calculate_score(result.issues, len(result.recommendations))
        result.confidence = calculate_confidence(result.summary, result.rules_applied)

    @staticmethod
    def _apply_options(result: CompatibilityCheckResult, options: CheckOptions) -> None:
        if not options.include_warnings:
            result.warnings = []
        if not options.include_recommendations:
            result.recommendations = []
        elif options.max_suggestions > 0:
            ranked = sorted(result.recommendations, key=lambda r: r.priority, reverse=True)
            result.recommendations = ranked[:options.max_suggestions]

    def _apply_domain_pass(
        self,
        result: CompatibilityCheckResult,
        services: List[ServiceIdentifier],
        db_context: DatabaseCompatibilityContext
    ) -> None:
        database = next((s for s in services if s.type == "database"), None)
        if database is None:
            result.missing_dependencies.append(
                ServiceIdentifier.create("database", "postgresql", ["multi-tenant"])
            )
            result.missing_dependencies = _unique_services(result.missing_dependencies)
        else:
            domain = self.database_engine.validate(database, db_context)
            result.domain_validation = domain
            result.issues.extend(domain.issues)
            result.recommendations.extend(domain.recommendations)

        result.recommendations.extend(self._tenancy_recommendations(services, db_context))
        result.recommendations.extend(self._scaling_recommendations(services, db_context))

        result.issues = _unique(result.issues)
        result.warnings = _unique(result.warnings)
        result.recommendations = _unique(result.recommendations)

        self._finalize(result)
        if result.domain_validation is not None:
            result.overall_score = min(result.overall_score, result.domain_validation.score)

    @staticmethod
    def _tenancy_recommendations(
        services: List[ServiceIdentifier],
        db_context: DatabaseCompatibilityContext
    ) -> List[ServiceRecommendation]:
        if not db_context.multi_tenancy.enabled:
            return []

        recommendations = []
        auth = next((s for s in services if s.type == "auth"), None)
        if auth is not None and "multi-tenant" not in auth.tags:
            recommendations.append(ServiceRecommendation(
                type=RecommendationType.CONFIGURE,
                service=auth,
                reason="Configure authentication for multi-tenant support",
                benefits=["Proper tenant context in authentication", "Tenant-aware session management",
                          "Secure tenant isolation"],
                effort="medium",
                impact="high",
                priority=85,
            ))

        rbac = next((s for s in services if s.type == "rbac"), None)
        if rbac is not None:
            recommendations.append(ServiceRecommendation(
                type=RecommendationType.CONFIGURE,
                service=rbac,
                reason="Configure RBAC for tenant-aware permissions",
                benefits=["Tenant-specific role management", "Cross-tenant access prevention",
                          "Scalable permission system"],
                effort="high",
                impact="high",
                priority=90,
            ))
        return recommendations

    @staticmethod
    def _scaling_recommendations(
        services: List[ServiceIdentifier],
        db_context: DatabaseCompatibilityContext
    ) -> List[ServiceRecommendation]:
        recommendations = []
        types = {s.type for s in services}

        if db_context.scaling.caching and "cache" not in types:
            recommendations.append(ServiceRecommendation(
                type=RecommendationType.ADD,
                service=ServiceIdentifier.create("cache", "redis", ["scaling"]),
                reason="Add Redis for improved scaling and performance",
                benefits=["Reduced database load", "Faster response times", "Session and data caching"],
                effort="medium",
                impact="high",
                priority=85,
            ))

        audited = any(s.type == "monitoring" or "audit" in s.tags for s in services)
        if db_context.compliance.gdpr_compliance and not audited:
            recommendations.append(ServiceRecommendation(
                type=RecommendationType.ADD,
                service=ServiceIdentifier.create("monitoring", "sentry", ["audit", "gdpr"]),
                reason="GDPR compliance requires audit logging capabilities",
                benefits=["GDPR compliance", "Audit trail", "Data protection monitoring"],
                effort="medium",
                impact="high",
                priority=95,
            ))
        return recommendations

    @staticmethod
    def _degrade(result: CompatibilityCheckResult, services: List[ServiceIdentifier], error: Exception) -> None:
        source = services[0] if services else ServiceIdentifier.create("unknown", "unknown")
        issue = CompatibilityIssue(
            type=IssueType.ERROR,
            severity=Severity.CRITICAL,
            message=f"Compatibility check failed: {error}",
            source_service=source,
        )
        result.compatible = False
        result.overall_score = 0
        result.issues.append(issue)
        result.critical_issues = [i for i in result.issues if i.severity == Severity.CRITICAL]
        result.confidence = MIN_CONFIDENCE
        result.error = str(error)

    def _record(self, kind: str, result: CompatibilityCheckResult, start_time: float) -> None:
        duration = time.perf_counter() - start_time
        result.analysis_time_ms = round(duration * 1000, 3)
        if self.metrics:
            self.metrics.record_compatibility_check(kind, result.compatible, duration)

        self.logger.info(
            "Compatibility check completed",
            kind=kind,
            request_id=result.request_id,
            compatible=result.compatible,
            score=result.overall_score,
            issue_count=len(result.issues),
            rules_applied=result.rules_applied,
            duration_ms=result.analysis_time_ms,
        )


def _unique(items: list) -> list:
    seen = set()
    unique = []
    for item in items:
        key = item.fingerprint()
        if key not in seen:
            seen.add(key)
            unique.append(item)
    return unique


def _unique_services(services: List[ServiceIdentifier]) -> List[ServiceIdentifier]:
    seen = set()
    unique = []
    for service in services:
        if service.key not in seen:
            seen.add(service.key)
            unique.append(service)
    return unique
