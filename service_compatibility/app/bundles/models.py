"""
Bundle models for the Compatibility Service.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from shared.errors import ValidationError
from ..engine.models import CompatibilityCheckResult, Serializable
from ..rules.models import ServiceIdentifier

BundleCategory = Literal["starter", "professional", "enterprise", "development"]
BusinessModel = Literal["mvp", "freemium", "subscription", "enterprise"]
TeamSize = Literal["solo", "small", "medium", "large"]
Budget = Literal["low", "medium", "high"]
SetupComplexity = Literal["simple", "moderate", "complex"]

BUNDLE_CATEGORIES = ("starter", "professional", "enterprise", "development")
SETUP_COMPLEXITIES = ("simple", "moderate", "complex")


@dataclass
class BundleServices(Serializable):
    core: List[ServiceIdentifier] = field(default_factory=list)
    optional: List[ServiceIdentifier] = field(default_factory=list)

    def all(self) -> List[ServiceIdentifier]:
        return [*self.core, *self.optional]


@dataclass
class BundleRequirements(Serializable):
    min_tenants: int
    max_tenants: int
    expected_load: str
    compliance: List[str] = field(default_factory=list)
    budget: str = "low"


@dataclass
class BundleFeatures(Serializable):
    multi_tenancy: bool = False
    caching: bool = False
    monitoring: bool = False
    analytics: bool = False
    rbac: bool = False
    encryption: bool = False

    def enabled(self) -> List[str]:
        return [name.replace("_", "-") for name, on in self.to_dict().items() if on]


@dataclass
class BundleDeployment(Serializable):
    environments: List[str] = field(default_factory=list)
    cloud_providers: List[str] = field(default_factory=list)
    estimated_cost: str = ""
    setup_complexity: str = "simple"


@dataclass
class Bundle(Serializable):
    """A predefined set of core and optional services."""
    id: str
    name: str
    display_name: str
    description: str
    category: str
    services: BundleServices
    requirements: BundleRequirements
    features: BundleFeatures
    deployment: BundleDeployment

    def __post_init__(self):
        if not self.id:
            raise ValidationError("Bundle ID must not be empty")
        if self.category not in BUNDLE_CATEGORIES:
            raise ValidationError(
                f"Invalid bundle category: {self.category}",
                {"bundle_id": self.id, "allowed": list(BUNDLE_CATEGORIES)}
            )
        if self.deployment.setup_complexity not in SETUP_COMPLEXITIES:
            raise ValidationError(
                f"Invalid setup complexity: {self.deployment.setup_complexity}",
                {"bundle_id": self.id, "allowed": list(SETUP_COMPLEXITIES)}
            )
        if self.requirements.min_tenants > self.requirements.max_tenants:
            raise ValidationError(
                "Bundle min_tenants must not exceed max_tenants",
                {
                    "bundle_id": self.id,
                    "min_tenants": self.requirements.min_tenants,
                    "max_tenants": self.requirements.max_tenants,
                }
            )

    @property
    def database(self) -> Optional[ServiceIdentifier]:
        return next((s for s in self.services.core if s.type == "database"), None)


class TechnicalConstraints(BaseModel):
    cloud_provider: Optional[str] = None
    preferred_database: Optional[str] = None
    existing_infrastructure: List[str] = Field(default_factory=list)
    tenancy_strategy: Optional[Literal[
        "row-level-security", "schema-per-tenant", "database-per-tenant", "shared-database"
    ]] = None


class BundleRecommendationRequest(BaseModel):
    """Business scenario a bundle is recommended for."""

    business_model: BusinessModel
    expected_users: int = Field(default=0, ge=0)
    expected_tenants: int = Field(default=1, ge=0)
    team_size: TeamSize = "small"
    budget: Budget = "medium"
    timeline: Literal["immediate", "weeks", "months"] = "weeks"
    compliance: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    technical_constraints: TechnicalConstraints = Field(default_factory=TechnicalConstraints)


@dataclass
class BundleScore(Serializable):
    """Weighted score of one bundle with its per-criterion breakdown."""
    bundle_id: str
    score: float
    breakdown: Dict[str, float] = field(default_factory=dict)
    assessment: str = ""


@dataclass
class MigrationPath(Serializable):
    source: str
    target: str
    effort: str
    steps: List[str] = field(default_factory=list)


@dataclass
class SetupEstimate(Serializable):
    time_in_hours: int
    complexity: str
    prerequisites: List[str] = field(default_factory=list)


@dataclass
class BundleRecommendationResult(Serializable):
    recommended: Bundle
    alternatives: List[Bundle]
    reasoning: List[str]
    compatibility: CompatibilityCheckResult
    estimated_setup: SetupEstimate
    scores: List[BundleScore] = field(default_factory=list)
    migration_path: Optional[MigrationPath] = None

    def to_summary(self) -> Dict[str, Any]:
        return {
            "recommended": self.recommended.id,
            "alternatives": [bundle.id for bundle in self.alternatives],
            "compatible": self.compatibility.compatible,
            "estimated_hours": self.estimated_setup.time_in_hours,
        }
