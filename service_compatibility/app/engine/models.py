"""
Result and context models for the compatibility engine.

Results are plain dataclasses built fresh for every call; the database
context is a pydantic model because it arrives from API callers.
"""

import uuid
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from ..rules.models import ServiceIdentifier, Severity

TenancyStrategy = Literal["row-level-security", "schema-per-tenant", "database-per-tenant", "shared-database"]
IsolationLevel = Literal["strict", "moderate", "relaxed"]
ExpectedLoad = Literal["low", "medium", "high", "enterprise"]
LatencyRequirement = Literal["relaxed", "moderate", "strict", "realtime"]
ConsistencyLevel = Literal["eventual", "strong"]


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if is_dataclass(value):
        return {f.name: _serialize(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, (frozenset, set)):
        return sorted(_serialize(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_serialize(v) for v in value]
    return value


class Serializable:
    """JSON-ready ``to_dict`` for result dataclasses."""

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: _serialize(getattr(self, f.name)) for f in fields(self)}


def new_id() -> str:
    return str(uuid.uuid4())


class IssueType(str, Enum):
    """Issue types surfaced by a check."""
    CONFLICT = "conflict"
    REQUIRE = "require"
    DEPEND = "depend"
    EXCLUDE = "exclude"
    REPLACE = "replace"
    ENHANCE = "enhance"
    RECOMMEND = "recommend"
    ERROR = "error"


class RecommendationType(str, Enum):
    """Actions a recommendation proposes."""
    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"
    CONFIGURE = "configure"
    UPGRADE = "upgrade"


class MigrationType(str, Enum):
    """Migration plan shapes, from most to least downtime."""
    MAINTENANCE_WINDOW = "maintenance-window"
    BLUE_GREEN = "blue-green"
    ZERO_DOWNTIME = "zero-downtime"


@dataclass
class Resolution(Serializable):
    possible: bool = True
    automatic: bool = False
    steps: List[str] = field(default_factory=list)
    alternatives: List[ServiceIdentifier] = field(default_factory=list)
    cost: str = "medium"


@dataclass
class CompatibilityIssue(Serializable):
    """A conflict or warning raised against a service (pair)."""
    type: IssueType
    severity: Severity
    message: str
    source_service: ServiceIdentifier
    target_service: Optional[ServiceIdentifier] = None
    rule_id: Optional[str] = None
    rule_name: Optional[str] = None
    resolution: Optional[Resolution] = None
    id: str = field(default_factory=new_id)

    def fingerprint(self) -> tuple:
        target = self.target_service.key if self.target_service else None
        return (self.severity, self.message, self.source_service.key, target, self.rule_id)


@dataclass
class Implementation(Serializable):
    automated: bool = False
    steps: List[str] = field(default_factory=list)
    estimated_minutes: int = 0
    dependencies: List[str] = field(default_factory=list)


@dataclass
class ServiceRecommendation(Serializable):
    """A suggested change to the service selection."""
    type: RecommendationType
    service: ServiceIdentifier
    reason: str
    benefits: List[str] = field(default_factory=list)
    effort: str = "medium"
    impact: str = "medium"
    priority: int = 50
    implementation: Optional[Implementation] = None

    def fingerprint(self) -> tuple:
        return (self.type, self.service.key, self.reason)


@dataclass
class CheckSummary(Serializable):
    total_services: int = 0
    compatible_pairs: int = 0
    conflicting_pairs: int = 0
    missing_pairs: int = 0
    recommendation_count: int = 0

    @property
    def total_pairs(self) -> int:
        return self.compatible_pairs + self.conflicting_pairs + self.missing_pairs


@dataclass
class CheckOptions:
    """Caller options for a compatibility check."""
    environment: Optional[str] = None
    include_recommendations: bool = True
    include_warnings: bool = True
    max_suggestions: int = 0
    context: Dict[str, Any] = field(default_factory=dict)

    def evaluation_context(self) -> Dict[str, Any]:
        context = dict(self.context)
        if self.environment:
            context.setdefault("environment", self.environment)
        return context


@dataclass
class MigrationStep(Serializable):
    id: str
    name: str
    description: str
    estimated_minutes: int
    reversible: bool
    risk_level: str


@dataclass
class MigrationValidation(Serializable):
    pre_checks: List[str] = field(default_factory=list)
    post_checks: List[str] = field(default_factory=list)
    rollback_checks: List[str] = field(default_factory=list)


@dataclass
class MigrationPlan(Serializable):
    """Ordered plan for moving off an unsuitable database."""
    type: MigrationType
    source: str
    target: str
    estimated_downtime_minutes: int
    steps: List[MigrationStep] = field(default_factory=list)
    prerequisites: List[str] = field(default_factory=list)
    validation: MigrationValidation = field(default_factory=MigrationValidation)

    @property
    def total_minutes(self) -> int:
        return sum(step.estimated_minutes for step in self.steps)


@dataclass
class DatabaseValidationResult(Serializable):
    """Outcome of the domain pass over one database choice."""
    database: ServiceIdentifier
    compatible: bool
    score: int
    score_reduction: int
    issues: List[CompatibilityIssue] = field(default_factory=list)
    recommendations: List[ServiceRecommendation] = field(default_factory=list)
    migration_plan: Optional[MigrationPlan] = None


@dataclass
class SchemaAnalysis(Serializable):
    patterns: Dict[str, bool]
    data_isolation: Dict[str, Any]
    indexing_strategy: str
    partitioning_required: bool
    estimated_query_performance: str


@dataclass
class CompatibilityCheckResult(Serializable):
    """Aggregated outcome of a compatibility check."""
    request_id: str = field(default_factory=new_id)
    compatible: bool = True
    overall_score: int = 100
    issues: List[CompatibilityIssue] = field(default_factory=list)
    critical_issues: List[CompatibilityIssue] = field(default_factory=list)
    warnings: List[CompatibilityIssue] = field(default_factory=list)
    recommendations: List[ServiceRecommendation] = field(default_factory=list)
    missing_dependencies: List[ServiceIdentifier] = field(default_factory=list)
    confidence: float = 1.0
    rules_applied: int = 0
    summary: CheckSummary = field(default_factory=CheckSummary)
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    analysis_time_ms: float = 0.0
    matrix_version: Optional[str] = None
    domain_validation: Optional[DatabaseValidationResult] = None
    error: Optional[str] = None


class MultiTenancyRequirements(BaseModel):
    enabled: bool = True
    strategy: TenancyStrategy = "row-level-security"
    isolation: IsolationLevel = "moderate"
    max_tenants: Optional[int] = Field(default=None, ge=0)


class ScalingRequirements(BaseModel):
    read_replicas: bool = False
    sharding: bool = False
    connection_pooling: bool = True
    caching: bool = False


class ComplianceRequirements(BaseModel):
    data_residency: bool = False
    encryption: bool = False
    audit_logging: bool = False
    gdpr_compliance: bool = False


class PerformanceRequirements(BaseModel):
    expected_load: ExpectedLoad = "medium"
    latency_requirements: LatencyRequirement = "moderate"
    consistency_level: ConsistencyLevel = "strong"


class DatabaseCompatibilityContext(BaseModel):
    """Tenancy, scaling, compliance and performance needs for a database choice."""

    multi_tenancy: MultiTenancyRequirements = Field(default_factory=MultiTenancyRequirements)
    scaling: ScalingRequirements = Field(default_factory=ScalingRequirements)
    compliance: ComplianceRequirements = Field(default_factory=ComplianceRequirements)
    performance: PerformanceRequirements = Field(default_factory=PerformanceRequirements)

    @classmethod
    def saas(
        cls,
        tenancy_strategy: TenancyStrategy = "row-level-security",
        expected_load: ExpectedLoad = "medium",
        max_tenants: Optional[int] = None,
        gdpr_compliance: bool = False,
        data_residency: bool = False,
        isolation: IsolationLevel = "moderate",
        audit_logging: bool = False,
        multi_tenant: bool = True,
    ) -> "DatabaseCompatibilityContext":
        """Context for a typical multi-tenant SaaS deployment."""
        return cls(
            multi_tenancy=MultiTenancyRequirements(
                enabled=multi_tenant,
                strategy=tenancy_strategy,
                isolation=isolation,
                max_tenants=max_tenants,
            ),
            scaling=ScalingRequirements(
                connection_pooling=True,
                caching=expected_load in ("medium", "high", "enterprise"),
            ),
            compliance=ComplianceRequirements(
                data_residency=data_residency,
                encryption=gdpr_compliance,
                audit_logging=audit_logging or gdpr_compliance,
                gdpr_compliance=gdpr_compliance,
            ),
            performance=PerformanceRequirements(expected_load=expected_load),
        )

    @property
    def is_production_load(self) -> bool:
        return self.performance.expected_load in ("high", "enterprise")

    def to_condition_context(self) -> Dict[str, Any]:
        """Flatten into the keys catalog conditions are written against."""
        context: Dict[str, Any] = {
            "multiTenant": self.multi_tenancy.enabled,
            "tenancyStrategy": self.multi_tenancy.strategy,
            "isolationLevel": self.multi_tenancy.isolation,
            "expectedLoad": self.performance.expected_load,
            "latencyRequirements": self.performance.latency_requirements,
            "consistencyLevel": self.performance.consistency_level,
            "readReplicas": self.scaling.read_replicas,
            "sharding": self.scaling.sharding,
            "connectionPooling": self.scaling.connection_pooling,
            "caching": self.scaling.caching,
            "gdprCompliance": self.compliance.gdpr_compliance,
            "auditRequired": self.compliance.audit_logging,
            "encryptionRequired": self.compliance.encryption,
            "globalTenants": self.compliance.data_residency,
            "databaseContext": self.model_dump(),
        }
        if self.multi_tenancy.max_tenants is not None:
            context["maxTenants"] = self.multi_tenancy.max_tenants
        return context
