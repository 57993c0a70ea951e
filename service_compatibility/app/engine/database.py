"""
Database compatibility engine.

Encodes structural facts about storage engines (tenancy, scaling,
compliance, performance) as direct checks against capability profiles
instead of catalog rules.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from shared.config import BaseConfig
from shared.logging import get_logger
from ..rules.models import ServiceIdentifier, Severity
from .models import (
    CompatibilityIssue, DatabaseCompatibilityContext, DatabaseValidationResult,
    Implementation, IssueType, MigrationPlan, MigrationStep, MigrationType,
    MigrationValidation, RecommendationType, Resolution, SchemaAnalysis,
    ServiceRecommendation
)

EMBEDDED_TAG = "embedded"
REPLACEMENT_PROVIDER = "postgresql"


@dataclass(frozen=True)
class EngineProfile:
    """What a storage engine can do natively."""
    provider: str
    display_name: str
    embedded: bool = False
    row_level_security: bool = False
    schemas: bool = False
    read_replicas: bool = True
    sharding: bool = True
    document_store: bool = False
    native_encryption: bool = True


ENGINE_PROFILES: Dict[str, EngineProfile] = {
    "postgresql": EngineProfile("postgresql", "PostgreSQL", row_level_security=True, schemas=True),
    "mysql": EngineProfile("mysql", "MySQL"),
    "mariadb": EngineProfile("mariadb", "MariaDB"),
    "sqlite": EngineProfile(
        "sqlite", "SQLite", embedded=True, read_replicas=False, sharding=False, native_encryption=False
    ),
    "mongodb": EngineProfile("mongodb", "MongoDB", document_store=True),
}

MIGRATION_PREREQUISITES = [
    "Full database backup",
    "Application compatibility verification",
    "Rollback plan preparation",
    "Team coordination and communication plan",
]

MIGRATION_VALIDATION = {
    "pre_checks": [
        "Verify backup integrity",
        "Test application compatibility",
        "Check resource availability",
        "Validate migration scripts",
    ],
    "post_checks": [
        "Data integrity verification",
        "Performance testing",
        "Application functionality testing",
        "Monitoring setup verification",
    ],
    "rollback_checks": [
        "Rollback script testing",
        "Data consistency verification",
        "Application rollback testing",
    ],
}

_BASE_STEPS = [
    ("backup", "Create Full Backup", "Create complete backup of current database", 30, False, "low"),
    ("setup-new-db", "Setup New Database", "Install and configure new database system", 45, True, "medium"),
    ("schema-migration", "Migrate Schema", "Create schema in new database system", 60, True, "medium"),
    ("data-migration", "Migrate Data", "Transfer data to new database system", 120, False, "high"),
    ("validation", "Validate Migration", "Verify data integrity and completeness", 30, False, "low"),
]

_EXTRA_STEPS = {
    MigrationType.ZERO_DOWNTIME: [
        ("sync-setup", "Setup Data Sync", "Configure real-time data synchronization", 45, True, "medium"),
        ("cutover", "Application Cutover", "Switch application to new database", 5, True, "high"),
    ],
    MigrationType.BLUE_GREEN: [
        ("switch-dns", "Switch DNS/Load Balancer", "Redirect traffic to new database", 10, True, "medium"),
    ],
    MigrationType.MAINTENANCE_WINDOW: [],
}

_DOWNTIME_MINUTES = {
    MigrationType.ZERO_DOWNTIME: 0,
    MigrationType.BLUE_GREEN: 30,
    MigrationType.MAINTENANCE_WINDOW: 120,
}


class _Findings:
    """Accumulates issues, recommendations and score reduction for one validation."""

    def __init__(self, database: ServiceIdentifier):
        self.database = database
        self.issues: List[CompatibilityIssue] = []
        self.recommendations: List[ServiceRecommendation] = []
        self.reduction = 0

    def conflict(
        self,
        severity: Severity,
        message: str,
        reduction: int,
        steps: List[str],
        alternatives: Optional[List[ServiceIdentifier]] = None,
        cost: str = "high",
    ) -> None:
        self.issues.append(CompatibilityIssue(
            type=IssueType.CONFLICT,
            severity=severity,
            message=message,
            source_service=self.database,
            resolution=Resolution(steps=steps, alternatives=alternatives or [], cost=cost),
        ))
        self.reduction += reduction

    def configure(self, reason: str, benefits: List[str], effort: str, impact: str, priority: int,
                  implementation: Optional[Implementation] = None) -> None:
        self.recommendations.append(ServiceRecommendation(
            type=RecommendationType.CONFIGURE,
            service=self.database,
            reason=reason,
            benefits=benefits,
            effort=effort,
            impact=impact,
            priority=priority,
            implementation=implementation,
        ))

    def replace(self, tags: List[str], reason: str) -> None:
        if any(r.type == RecommendationType.REPLACE for r in self.recommendations):
            return
        self.recommendations.append(ServiceRecommendation(
            type=RecommendationType.REPLACE,
            service=ServiceIdentifier.create("database", REPLACEMENT_PROVIDER, tags),
            reason=reason,
            benefits=["Networked multi-tenant storage", "Read replicas and partitioning", "Native row-level security"],
            effort="high",
            impact="high",
            priority=95,
        ))


class DatabaseCompatibilityEngine:
    """Validates a database choice against tenancy, scaling, compliance and performance needs."""

    def __init__(self, config: Optional[BaseConfig] = None):
        self.logger = get_logger("compatibility.database_engine")
        severity = config.row_isolation_unsupported_severity if config else "error"
        self.row_isolation_severity = Severity(severity)

    def profile(self, database: ServiceIdentifier) -> EngineProfile:
        """Capability profile for ``database``; unknown engines get a generic one."""
        known = ENGINE_PROFILES.get(database.provider)
        embedded = EMBEDDED_TAG in database.tags
        if known is None:
            return EngineProfile(
                database.provider,
                database.provider,
                embedded=embedded,
                read_replicas=not embedded,
                sharding=not embedded,
                native_encryption=not embedded,
            )
        if embedded and not known.embedded:
            return EngineProfile(
                known.provider, known.display_name, embedded=True,
                read_replicas=False, sharding=False, native_encryption=False
            )
        return known

    def is_embedded(self, provider: str) -> bool:
        return self.profile(ServiceIdentifier.create("database", provider)).embedded

    def validate(self, database: ServiceIdentifier, context: DatabaseCompatibilityContext) -> DatabaseValidationResult:
        """Validate ``database`` for the given context."""
        profile = self.profile(database)
        findings = _Findings(database)

        self._check_tenancy(profile, context, findings)
        self._check_scaling(profile, context, findings)
        self._check_compliance(profile, context, findings)
        self._check_performance(profile, context, findings)

        compatible = not any(issue.severity == Severity.CRITICAL for issue in findings.issues)
        migration_plan = None
        if not compatible and any(r.type == RecommendationType.REPLACE for r in findings.recommendations):
            migration_plan = self.generate_migration_plan(database, context)

        result = DatabaseValidationResult(
            database=database,
            compatible=compatible,
            score=max(0, 100 - findings.reduction),
            score_reduction=findings.reduction,
            issues=findings.issues,
            recommendations=findings.recommendations,
            migration_plan=migration_plan,
        )

        self.logger.info(
            "Database validated",
            provider=database.provider,
            compatible=compatible,
            score=result.score,
            issue_count=len(result.issues),
            migration_plan=migration_plan.type.value if migration_plan else None,
        )
        return result

    def _check_tenancy(self, profile: EngineProfile, context: DatabaseCompatibilityContext, findings: _Findings):
        tenancy = context.multi_tenancy
        strategy = tenancy.strategy
        name = profile.display_name

        if profile.embedded:
            if strategy != "database-per-tenant":
                findings.conflict(
                    Severity.CRITICAL,
                    f"{name} only supports database-per-tenant strategy effectively",
                    40,
                    steps=[
                        "Switch to PostgreSQL or MySQL for other strategies",
                        f"Or use database-per-tenant with {name} (not recommended for production)",
                    ],
                    alternatives=[
                        ServiceIdentifier.create("database", "postgresql", ["multi-tenant"]),
                        ServiceIdentifier.create("database", "mysql", ["multi-tenant"]),
                    ],
                )
                findings.replace(["multi-tenant"], f"{name} cannot isolate tenants with {strategy}")

            if tenancy.max_tenants is not None and tenancy.max_tenants > 100:
                findings.conflict(
                    Severity.CRITICAL,
                    f"{name} is not suitable for high-scale multi-tenant applications",
                    50,
                    steps=["Use PostgreSQL or MySQL for production SaaS applications"],
                    alternatives=[ServiceIdentifier.create("database", "postgresql", ["high-scale"])],
                )
                findings.replace(["high-scale"], f"{name} cannot serve {tenancy.max_tenants} tenants")

        elif strategy == "row-level-security":
            if profile.row_level_security:
                findings.configure(
                    f"{name} RLS provides excellent tenant isolation",
                    ["Native row-level security", "Performance optimized",
                     "Fine-grained access control", "Transparent to application"],
                    effort="medium", impact="high", priority=90,
                    implementation=Implementation(
                        steps=[
                            "Enable RLS on tenant tables",
                            "Create tenant-aware policies",
                            "Configure connection with tenant context",
                            "Test isolation boundaries",
                        ],
                        estimated_minutes=180,
                        dependencies=["orm-configuration", "auth-integration"],
                    ),
                )
            else:
                findings.conflict(
                    self.row_isolation_severity,
                    f"{name} has limited native row-level security support",
                    20,
                    steps=[
                        "Implement application-level tenant filtering",
                        "Use views with DEFINER rights",
                        "Consider switching to PostgreSQL for native RLS",
                    ],
                    alternatives=[ServiceIdentifier.create("database", "postgresql", ["row-level-security"])],
                    cost="medium",
                )
                if self.row_isolation_severity == Severity.CRITICAL:
                    findings.replace(["row-level-security"], f"{name} lacks native row-level security")

        elif strategy == "schema-per-tenant":
            if profile.schemas:
                findings.configure(
                    f"{name} schemas provide excellent tenant separation",
                    ["Complete data isolation", "Independent migrations per tenant",
                     "Easy backup/restore per tenant", "Simplified tenant onboarding"],
                    effort="high", impact="high", priority=85,
                )
                if tenancy.max_tenants is not None and tenancy.max_tenants > 1000:
                    findings.conflict(
                        Severity.WARNING,
                        "Schema-per-tenant may not scale well beyond 1000 tenants",
                        10,
                        steps=[
                            "Consider row-level security for better scaling",
                            "Implement tenant sharding strategies",
                            "Use hybrid approach (schemas + RLS)",
                        ],
                    )
            else:
                findings.conflict(
                    Severity.WARNING,
                    f"Schema-per-tenant works best with PostgreSQL, not {name}",
                    0,
                    steps=["Consider using PostgreSQL for better schema-per-tenant support"],
                    alternatives=[ServiceIdentifier.create("database", "postgresql", ["schema-per-tenant"])],
                    cost="medium",
                )

        if profile.document_store and tenancy.enabled:
            findings.configure(
                f"{name} supports flexible multi-tenant patterns",
                ["Document-level tenant field", "Flexible schema per tenant", "Horizontal scaling capabilities"],
                effort="medium", impact="medium", priority=70,
            )

        if tenancy.isolation == "strict" and strategy == "shared-database":
            findings.conflict(
                Severity.WARNING,
                "Shared database strategy may not meet strict isolation requirements",
                15,
                steps=["Use schema-per-tenant or row-level security", "Implement additional application-level controls"],
                cost="medium",
            )

    def _check_scaling(self, profile: EngineProfile, context: DatabaseCompatibilityContext, findings: _Findings):
        scaling = context.scaling
        name = profile.display_name

        if scaling.read_replicas:
            if profile.read_replicas:
                findings.configure(
                    "Configure read replicas for better read scaling",
                    ["Distribute read load", "Improved query performance", "High availability"],
                    effort="medium", impact="high", priority=80,
                )
            else:
                findings.conflict(
                    Severity.CRITICAL,
                    f"{name} does not support read replicas",
                    30,
                    steps=["Use PostgreSQL or MySQL for read replica support"],
                    alternatives=[ServiceIdentifier.create("database", "postgresql", ["read-replicas"])],
                )
                findings.replace(["read-replicas"], f"{name} cannot replicate reads")

        if scaling.sharding:
            if profile.sharding:
                findings.configure(
                    f"{name} supports horizontal sharding",
                    ["Horizontal scaling", "Partitioning support", "Load distribution"],
                    effort="high", impact="high", priority=75,
                )
            else:
                findings.conflict(
                    Severity.CRITICAL,
                    f"{name} does not support sharding",
                    35,
                    steps=["Use a distributed database for sharding support"],
                    alternatives=[
                        ServiceIdentifier.create("database", "postgresql", ["sharding"]),
                        ServiceIdentifier.create("database", "mongodb", ["sharding"]),
                    ],
                )
                findings.replace(["sharding"], f"{name} cannot be sharded")

        if scaling.connection_pooling and not profile.embedded:
            findings.configure(
                "Configure connection pooling for better resource utilization",
                ["Efficient connection management", "Better performance under load", "Resource optimization"],
                effort="low", impact="medium", priority=85,
            )

    def _check_compliance(self, profile: EngineProfile, context: DatabaseCompatibilityContext, findings: _Findings):
        compliance = context.compliance

        if compliance.encryption:
            if profile.native_encryption:
                findings.configure(
                    "Configure database encryption for compliance",
                    ["Data at rest encryption", "Transport encryption", "Key management integration"],
                    effort="medium", impact="high", priority=95,
                )
            else:
                findings.configure(
                    f"{profile.display_name} encryption requires SQLCipher or similar",
                    ["File-level encryption", "Transparent encryption"],
                    effort="low", impact="medium", priority=85,
                )

        if compliance.audit_logging:
            findings.configure(
                "Enable audit logging for compliance requirements",
                ["Change tracking", "Access logging", "Compliance reporting"],
                effort="medium", impact="high", priority=90,
            )

        if compliance.gdpr_compliance:
            findings.configure(
                "Configure GDPR compliance features",
                ["Data anonymization support", "Right to be forgotten", "Data portability"],
                effort="high", impact="high", priority=95,
            )

    def _check_performance(self, profile: EngineProfile, context: DatabaseCompatibilityContext, findings: _Findings):
        performance = context.performance
        name = profile.display_name

        if context.is_production_load:
            if profile.embedded:
                findings.conflict(
                    Severity.CRITICAL,
                    f"{name} is not suitable for high-load enterprise applications",
                    40,
                    steps=["Use PostgreSQL or MySQL for enterprise workloads"],
                    alternatives=[ServiceIdentifier.create("database", "postgresql", ["enterprise"])],
                )
                findings.replace(["enterprise"], f"{name} cannot sustain {performance.expected_load} load")
            elif not profile.document_store:
                findings.configure(
                    "Optimize for high-load enterprise scenarios",
                    ["Query optimization", "Index tuning", "Performance monitoring"],
                    effort="high", impact="high", priority=90,
                )

        if performance.latency_requirements in ("strict", "realtime"):
            findings.recommendations.append(ServiceRecommendation(
                type=RecommendationType.ADD,
                service=ServiceIdentifier.create("cache", "redis", ["performance"]),
                reason="Add Redis caching for strict latency requirements",
                benefits=["Sub-millisecond response times", "Reduced database load", "Better user experience"],
                effort="medium",
                impact="high",
                priority=85,
            ))

        if performance.consistency_level == "strong" and profile.document_store:
            findings.configure(
                f"Configure {name} for strong consistency",
                ["ACID transactions", "Strong consistency guarantees", "Reliable reads"],
                effort="medium", impact="high", priority=80,
            )

    def generate_migration_plan(
        self,
        database: ServiceIdentifier,
        context: DatabaseCompatibilityContext,
        target: str = REPLACEMENT_PROVIDER
    ) -> MigrationPlan:
        """Templated plan for moving ``database`` to ``target``."""
        if context.is_production_load and context.performance.latency_requirements == "realtime":
            plan_type = MigrationType.ZERO_DOWNTIME
        elif context.is_production_load:
            plan_type = MigrationType.BLUE_GREEN
        else:
            plan_type = MigrationType.MAINTENANCE_WINDOW

        steps = [
            MigrationStep(id=step_id, name=name, description=description,
                          estimated_minutes=minutes, reversible=reversible, risk_level=risk)
            for step_id, name, description, minutes, reversible, risk
            in _BASE_STEPS + _EXTRA_STEPS[plan_type]
        ]

        return MigrationPlan(
            type=plan_type,
            source=database.provider,
            target=target,
            estimated_downtime_minutes=_DOWNTIME_MINUTES[plan_type],
            steps=steps,
            prerequisites=list(MIGRATION_PREREQUISITES),
            validation=MigrationValidation(
                pre_checks=list(MIGRATION_VALIDATION["pre_checks"]),
                post_checks=list(MIGRATION_VALIDATION["post_checks"]),
                rollback_checks=list(MIGRATION_VALIDATION["rollback_checks"]),
            ),
        )

    def analyze_schema(self, database: ServiceIdentifier, context: DatabaseCompatibilityContext) -> SchemaAnalysis:
        """Indexing strategy and query-performance estimate for a tenancy layout."""
        strategy = context.multi_tenancy.strategy
        separation = {
            "schema-per-tenant": "complete",
            "database-per-tenant": "complete",
            "row-level-security": "logical",
        }.get(strategy, "none")

        return SchemaAnalysis(
            patterns={
                "multi_tenant": strategy != "shared-database",
                "event_sourcing": False,
                "cqrs": False,
                "microservices": True,
            },
            data_isolation={
                "tenant_separation": separation,
                "cross_tenant_queries": context.multi_tenancy.isolation != "strict",
                "shared_tables": ["users", "tenants", "audit_logs"],
            },
            indexing_strategy=self._indexing_strategy(database, context),
            partitioning_required=context.scaling.sharding or strategy == "schema-per-tenant",
            estimated_query_performance=self._estimate_query_performance(database, context),
        )

    def _indexing_strategy(self, database: ServiceIdentifier, context: DatabaseCompatibilityContext) -> str:
        strategies = []
        if context.multi_tenancy.strategy == "row-level-security":
            strategies.append("tenant-aware-indexes")
        if context.scaling.sharding:
            strategies.append("shard-key-indexes")
        if context.is_production_load:
            strategies.append("covering-indexes")
        if self.profile(database).schemas:
            strategies.extend(["partial-indexes", "expression-indexes"])
        return ", ".join(strategies) or "standard-indexes"

    def _estimate_query_performance(self, database: ServiceIdentifier, context: DatabaseCompatibilityContext) -> str:
        profile = self.profile(database)
        score = 100
        if profile.embedded:
            score -= 40
        if profile.document_store:
            score -= 10

        strategy = context.multi_tenancy.strategy
        if strategy == "schema-per-tenant":
            score -= 15
        elif strategy == "row-level-security":
            score -= 5

        load = context.performance.expected_load
        if load == "high":
            score -= 20
        elif load == "enterprise":
            score -= 30

        if context.scaling.sharding:
            score -= 10
        if context.scaling.read_replicas:
            score += 10
        if context.scaling.caching:
            score += 15

        if score >= 90:
            return "excellent"
        if score >= 70:
            return "good"
        if score >= 50:
            return "acceptable"
        return "poor"
