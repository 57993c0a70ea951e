"""
Bundle resolver.

Scores every catalog bundle against a business scenario, picks the best
fit and checks the winning bundle's services for compatibility.
"""

import math
from typing import Dict, Iterable, List, Optional

from shared.errors import BundleCatalogError, NotFoundError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..engine.checker import CompatibilityChecker
from ..engine.models import CompatibilityCheckResult, DatabaseCompatibilityContext
from .catalog import default_bundles
from .models import (
    Bundle, BundleRecommendationRequest, BundleRecommendationResult, BundleScore,
    MigrationPath, SetupEstimate
)

BUSINESS_MODEL_ALIGNMENT: Dict[str, Dict[str, int]] = {
    "mvp": {"development": 15, "starter": 25, "professional": 10, "enterprise": 0},
    "freemium": {"development": 5, "starter": 20, "professional": 25, "enterprise": 15},
    "subscription": {"development": 0, "starter": 15, "professional": 25, "enterprise": 20},
    "enterprise": {"development": 0, "starter": 5, "professional": 15, "enterprise": 25},
}

BUDGET_ALIGNMENT: Dict[str, Dict[str, int]] = {
    "low": {"low": 15, "medium": 5, "high": 0},
    "medium": {"low": 10, "medium": 15, "high": 10},
    "high": {"low": 5, "medium": 12, "high": 15},
}

COMPLEXITY_ALIGNMENT: Dict[str, Dict[str, int]] = {
    "solo": {"simple": 10, "moderate": 5, "complex": 0},
    "small": {"simple": 8, "moderate": 10, "complex": 3},
    "medium": {"simple": 5, "moderate": 10, "complex": 8},
    "large": {"simple": 3, "moderate": 8, "complex": 10},
}

FEATURE_WEIGHTS: Dict[str, int] = {
    "multi-tenancy": 5,
    "rbac": 4,
    "caching": 3,
    "monitoring": 3,
    "analytics": 3,
    "encryption": 2,
}

EXPECTED_LOAD_BY_MODEL = {
    "mvp": "low",
    "freemium": "medium",
    "subscription": "medium",
    "enterprise": "enterprise",
}

SETUP_BASE_HOURS = {"simple": 4, "moderate": 12, "complex": 24}
TEAM_MULTIPLIER = {"solo": 1.5, "small": 1.2, "medium": 1.0, "large": 0.8}

AUDIT_STANDARDS = ("hipaa", "soc2")
MAX_ALTERNATIVES = 2


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class BundleResolver:
    """Recommends a bundle from the catalog for a business scenario."""

    def __init__(
        self,
        checker: CompatibilityChecker,
        bundles: Optional[Iterable[Bundle]] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.logger = get_logger("compatibility.bundle_resolver")
        self.checker = checker
        self.metrics = metrics
        self._bundles: Dict[str, Bundle] = {}
        for bundle in default_bundles() if bundles is None else bundles:
            self._bundles[bundle.id] = bundle

    def list_bundles(self) -> List[Bundle]:
        return list(self._bundles.values())

    def get_bundle(self, bundle_id: str) -> Bundle:
        bundle = self._bundles.get(bundle_id)
        if bundle is None:
            raise NotFoundError("bundle", bundle_id)
        return bundle

    def recommend_bundle(self, request: BundleRecommendationRequest) -> BundleRecommendationResult:
        """Score all bundles and build a recommendation around the best one."""
        if not self._bundles:
            raise BundleCatalogError("Cannot recommend a bundle from an empty catalog")

        scores = [self.score_bundle(bundle, request) for bundle in self._bundles.values()]
        # sorted() is stable, so ties keep catalog order
        ranked = sorted(scores, key=lambda s: s.score, reverse=True)

        recommended = self._bundles[ranked[0].bundle_id]
        alternatives = [self._bundles[s.bundle_id] for s in ranked[1:1 + MAX_ALTERNATIVES]]

        compatibility = self.checker.check_database_compatibility(
            recommended.services.all(),
            self.build_context(request, recommended)
        )

        result = BundleRecommendationResult(
            recommended=recommended,
            alternatives=alternatives,
            reasoning=self._reasoning(recommended, request),
            compatibility=compatibility,
            estimated_setup=self.estimate_setup(recommended, request),
            scores=ranked,
            migration_path=self._migration_path(recommended, request),
        )

        if self.metrics:
            self.metrics.record_bundle_recommendation(recommended.id)
        self.logger.info(
            "Bundle recommended",
            bundle_id=recommended.id,
            score=ranked[0].score,
            alternatives=[b.id for b in alternatives],
            compatible=compatibility.compatible,
            business_model=request.business_model,
        )
        return result

    def validate_bundle(self, bundle_id: str, context: DatabaseCompatibilityContext) -> CompatibilityCheckResult:
        """Database compatibility of a catalog bundle's full service list."""
        bundle = self.get_bundle(bundle_id)
        return self.checker.check_database_compatibility(bundle.services.all(), context)

    def score_bundle(self, bundle: Bundle, request: BundleRecommendationRequest) -> BundleScore:
        breakdown = {
            "business_model": self._score_business_model(bundle, request),
            "scale": self._score_scale(bundle, request),
            "features": self._score_features(bundle, request),
            "budget": self._score_budget(bundle, request),
            "complexity": self._score_complexity(bundle, request),
            "compliance": self._score_compliance(bundle, request),
        }
        score = max(0.0, min(100.0, float(sum(breakdown.values()))))
        return BundleScore(
            bundle_id=bundle.id,
            score=score,
            breakdown=breakdown,
            assessment=_assessment(score),
        )

    @staticmethod
    def _score_business_model(bundle: Bundle, request: BundleRecommendationRequest) -> int:
        return BUSINESS_MODEL_ALIGNMENT.get(request.business_model, {}).get(bundle.category, 0)

    @staticmethod
    def _score_scale(bundle: Bundle, request: BundleRecommendationRequest) -> float:
        requirements = bundle.requirements
        score = 0.0
        if requirements.min_tenants <= request.expected_tenants <= requirements.max_tenants:
            score += 15
        elif request.expected_tenants > requirements.max_tenants:
            score -= 10
        return score + min(10.0, request.expected_users / 1000)

    @staticmethod
    def _score_features(bundle: Bundle, request: BundleRecommendationRequest) -> int:
        offered = set(bundle.features.enabled())
        wanted = set(request.features)
        return sum(weight for name, weight in FEATURE_WEIGHTS.items() if name in wanted and name in offered)

    @staticmethod
    def _score_budget(bundle: Bundle, request: BundleRecommendationRequest) -> int:
        return BUDGET_ALIGNMENT.get(request.budget, {}).get(bundle.requirements.budget, 0)

    @staticmethod
    def _score_complexity(bundle: Bundle, request: BundleRecommendationRequest) -> int:
        return COMPLEXITY_ALIGNMENT.get(request.team_size, {}).get(bundle.deployment.setup_complexity, 0)

    @staticmethod
    def _score_compliance(bundle: Bundle, request: BundleRecommendationRequest) -> int:
        matched = sum(1 for standard in request.compliance if standard in bundle.requirements.compliance)
        return min(5, matched * 2)

    @staticmethod
    def build_context(request: BundleRecommendationRequest, bundle: Bundle) -> DatabaseCompatibilityContext:
        """Database context implied by a scenario and the bundle serving it."""
        strategy = request.technical_constraints.tenancy_strategy
        if strategy is None:
            strategy = "row-level-security" if bundle.features.multi_tenancy else "database-per-tenant"

        return DatabaseCompatibilityContext.saas(
            tenancy_strategy=strategy,
            expected_load=EXPECTED_LOAD_BY_MODEL.get(request.business_model, "medium"),
            max_tenants=request.expected_tenants,
            gdpr_compliance="gdpr" in request.compliance,
            data_residency="data-residency" in request.compliance,
            audit_logging=any(standard in request.compliance for standard in AUDIT_STANDARDS),
            multi_tenant=bundle.features.multi_tenancy,
        )

    @staticmethod
    def estimate_setup(bundle: Bundle, request: BundleRecommendationRequest) -> SetupEstimate:
        complexity = bundle.deployment.setup_complexity
        hours = SETUP_BASE_HOURS[complexity] * TEAM_MULTIPLIER[request.team_size]
        return SetupEstimate(
            time_in_hours=round_half_up(hours),
            complexity=complexity,
            prerequisites=_prerequisites(bundle),
        )

    def _migration_path(self, bundle: Bundle, request: BundleRecommendationRequest) -> Optional[MigrationPath]:
        database = bundle.database
        if database is None or self.checker.database_engine.profile(database).embedded:
            return None

        for existing in request.technical_constraints.existing_infrastructure:
            if not self.checker.database_engine.is_embedded(existing):
                continue
            target_name = self.checker.database_engine.profile(database).display_name
            return MigrationPath(
                source=existing,
                target=bundle.id,
                effort="medium",
                steps=[
                    f"Export {existing} data",
                    f"Set up {target_name} instance",
                    "Run database migrations",
                    "Import data with tenant context",
                    "Update application configuration",
                ],
            )
        return None

    @staticmethod
    def _reasoning(bundle: Bundle, request: BundleRecommendationRequest) -> List[str]:
        reasoning = [f"{bundle.display_name} is recommended for {request.business_model} applications"]

        if request.expected_tenants <= bundle.requirements.max_tenants:
            reasoning.append(
                f"Supports up to {bundle.requirements.max_tenants} tenants "
                f"(you need {request.expected_tenants})"
            )
        if bundle.features.multi_tenancy:
            reasoning.append("Includes robust multi-tenancy support")
        if bundle.deployment.setup_complexity == "simple":
            reasoning.append("Simple setup process suitable for quick deployment")
        if bundle.requirements.budget == request.budget:
            reasoning.append(f"Aligns with your {request.budget} budget requirements")
        return reasoning


def _assessment(score: float) -> str:
    if score >= 80:
        return "Excellent match for your requirements"
    if score >= 60:
        return "Good match with minor trade-offs"
    if score >= 40:
        return "Acceptable match but consider alternatives"
    return "Poor match - significant compromises required"


def _prerequisites(bundle: Bundle) -> List[str]:
    prerequisites = []
    providers = {service.provider for service in bundle.services.core}

    if "postgresql" in providers:
        prerequisites.append("PostgreSQL database instance or cloud service")
    if "redis" in providers:
        prerequisites.append("Redis instance or cloud cache service")
    if "gdpr" in bundle.requirements.compliance:
        prerequisites.append("GDPR compliance documentation and procedures")
    for standard in AUDIT_STANDARDS:
        if standard in bundle.requirements.compliance:
            prerequisites.append(f"{standard.upper()} audit controls and evidence collection")
    if bundle.deployment.setup_complexity == "complex":
        prerequisites.append("DevOps expertise for complex deployment")
    return prerequisites
