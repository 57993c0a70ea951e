"""
Unit tests for bundle models and the bundle resolver.
"""

from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from service_compatibility.app.bundles.catalog import default_bundles
from service_compatibility.app.bundles.models import (
    Bundle, BundleDeployment, BundleFeatures, BundleRecommendationRequest,
    BundleRequirements, BundleServices, TechnicalConstraints
)
from service_compatibility.app.bundles.resolver import BundleResolver, round_half_up
from service_compatibility.app.engine.checker import CompatibilityChecker
from service_compatibility.app.engine.models import DatabaseCompatibilityContext
from service_compatibility.app.rules.models import ServiceIdentifier
from service_compatibility.app.rules.repository import RuleRepository
from shared.errors import BundleCatalogError, NotFoundError, ValidationError


@pytest.fixture
def checker():
    """Create a checker over the shipped catalog."""
    repository = RuleRepository()
    repository.load()
    return CompatibilityChecker(repository)


@pytest.fixture
def resolver(checker):
    """Create a resolver over the shipped bundles."""
    return BundleResolver(checker)


@pytest.fixture
def mvp_request():
    """A solo founder building an MVP."""
    return BundleRecommendationRequest(
        business_model="mvp",
        expected_tenants=5,
        team_size="solo",
        budget="low",
    )


class TestBundleModel:
    """Test cases for Bundle validation."""

    def make_bundle(self, **overrides):
        fields = dict(
            id="custom",
            name="Custom",
            display_name="Custom Bundle",
            description="Custom bundle",
            category="starter",
            services=BundleServices(core=[ServiceIdentifier.create("database", "postgresql")]),
            requirements=BundleRequirements(min_tenants=1, max_tenants=10, expected_load="low"),
            features=BundleFeatures(),
            deployment=BundleDeployment(setup_complexity="simple"),
        )
        fields.update(overrides)
        return Bundle(**fields)

    def test_valid_bundle(self):
        """Test building a bundle."""
        bundle = self.make_bundle()

        assert bundle.database.provider == "postgresql"
        assert bundle.features.enabled() == []

    def test_min_tenants_above_max_rejected(self):
        """Test tenant range validation."""
        with pytest.raises(ValidationError):
            self.make_bundle(requirements=BundleRequirements(min_tenants=20, max_tenants=10, expected_load="low"))

    def test_invalid_category_rejected(self):
        """Test category validation."""
        with pytest.raises(ValidationError):
            self.make_bundle(category="premium")

    def test_invalid_complexity_rejected(self):
        """Test setup complexity validation."""
        with pytest.raises(ValidationError):
            self.make_bundle(deployment=BundleDeployment(setup_complexity="trivial"))

    def test_enabled_features_use_request_names(self):
        """Test that feature names line up with request features."""
        features = BundleFeatures(multi_tenancy=True, rbac=True)

        assert features.enabled() == ["multi-tenancy", "rbac"]


class TestBundleResolver:
    """Test cases for BundleResolver."""

    def test_catalog_order(self, resolver):
        """Test that bundles are listed in catalog order."""
        assert [b.category for b in resolver.list_bundles()] == [
            "starter", "professional", "enterprise", "development"
        ]

    def test_get_bundle(self, resolver):
        """Test bundle lookup."""
        assert resolver.get_bundle("saas-db-starter").category == "starter"

        with pytest.raises(NotFoundError):
            resolver.get_bundle("saas-db-missing")

    def test_mvp_scores(self, resolver, mvp_request):
        """Test the weighted score breakdown for an MVP scenario."""
        starter = resolver.score_bundle(resolver.get_bundle("saas-db-starter"), mvp_request)
        enterprise = resolver.score_bundle(resolver.get_bundle("saas-db-enterprise"), mvp_request)

        assert starter.score == 65
        assert starter.breakdown["business_model"] == 25
        assert starter.breakdown["scale"] == 15
        assert enterprise.score == 0
        assert starter.score > enterprise.score
        assert enterprise.assessment.startswith("Poor match")

    def test_recommend_mvp(self, resolver, mvp_request):
        """Test the recommendation for an MVP scenario."""
        result = resolver.recommend_bundle(mvp_request)

        assert result.recommended.id == "saas-db-starter"
        assert [b.id for b in result.alternatives] == ["saas-db-development", "saas-db-professional"]
        assert result.recommended not in result.alternatives
        assert result.compatibility.compatible is True
        assert result.estimated_setup.time_in_hours == 6
        assert result.migration_path is None
        assert [s.score for s in result.scores] == sorted((s.score for s in result.scores), reverse=True)

    def test_recommend_enterprise(self, resolver):
        """Test the recommendation for a regulated enterprise."""
        request = BundleRecommendationRequest(
            business_model="enterprise",
            expected_users=50000,
            expected_tenants=5000,
            team_size="large",
            budget="high",
            compliance=["gdpr", "hipaa", "soc2"],
            features=["multi-tenancy", "rbac"],
        )

        result = resolver.recommend_bundle(request)

        assert result.recommended.id == "saas-db-enterprise"
        assert result.scores[0].score == 89
        assert result.scores[0].assessment == "Excellent match for your requirements"
        assert result.estimated_setup.time_in_hours == 19
        assert "HIPAA audit controls and evidence collection" in result.estimated_setup.prerequisites
        assert "DevOps expertise for complex deployment" in result.estimated_setup.prerequisites

    def test_reasoning(self, resolver, mvp_request):
        """Test the reasoning lines."""
        reasoning = resolver.recommend_bundle(mvp_request).reasoning

        assert reasoning[0] == "SaaS Database Starter Bundle is recommended for mvp applications"
        assert "Supports up to 100 tenants (you need 5)" in reasoning
        assert "Aligns with your low budget requirements" in reasoning

    def test_migration_path_from_embedded_database(self, resolver):
        """Test the migration path for teams leaving an embedded database."""
        request = BundleRecommendationRequest(
            business_model="mvp",
            expected_tenants=5,
            team_size="solo",
            budget="low",
            technical_constraints=TechnicalConstraints(existing_infrastructure=["sqlite"]),
        )

        path = resolver.recommend_bundle(request).migration_path

        assert path is not None
        assert path.source == "sqlite"
        assert path.target == "saas-db-starter"
        assert path.steps[1] == "Set up PostgreSQL instance"

    def test_ties_keep_catalog_order(self, checker, mvp_request):
        """Test that equal scores resolve to the earlier bundle."""
        starter = default_bundles()[0]
        resolver = BundleResolver(checker, bundles=[
            replace(starter, id="first"),
            replace(starter, id="second"),
        ])

        result = resolver.recommend_bundle(mvp_request)

        assert result.recommended.id == "first"
        assert [b.id for b in result.alternatives] == ["second"]

    def test_empty_catalog(self, checker, mvp_request):
        """Test recommending from an empty catalog."""
        resolver = BundleResolver(checker, bundles=[])

        with pytest.raises(BundleCatalogError):
            resolver.recommend_bundle(mvp_request)

    def test_validate_bundle(self, resolver):
        """Test validating catalog bundles against a context."""
        context = DatabaseCompatibilityContext.saas()

        assert resolver.validate_bundle("saas-db-starter", context).compatible is True
        assert resolver.validate_bundle("saas-db-development", context).compatible is False

    def test_build_context(self, resolver):
        """Test the database context derived from a scenario."""
        request = BundleRecommendationRequest(
            business_model="subscription",
            expected_tenants=300,
            compliance=["gdpr"],
        )

        context = resolver.build_context(request, resolver.get_bundle("saas-db-professional"))
        development = resolver.build_context(request, resolver.get_bundle("saas-db-development"))

        assert context.multi_tenancy.strategy == "row-level-security"
        assert context.multi_tenancy.max_tenants == 300
        assert context.performance.expected_load == "medium"
        assert context.compliance.gdpr_compliance is True
        assert context.compliance.audit_logging is True
        assert development.multi_tenancy.strategy == "database-per-tenant"
        assert development.multi_tenancy.enabled is False

    @pytest.mark.parametrize("complexity,team_size,hours", [
        ("simple", "solo", 6),
        ("simple", "small", 5),
        ("moderate", "small", 14),
        ("moderate", "large", 10),
        ("complex", "medium", 24),
    ])
    def test_estimate_setup(self, resolver, complexity, team_size, hours):
        """Test setup hour estimation."""
        bundle = replace(
            resolver.get_bundle("saas-db-starter"),
            deployment=BundleDeployment(setup_complexity=complexity),
        )
        request = BundleRecommendationRequest(business_model="mvp", team_size=team_size)

        assert resolver.estimate_setup(bundle, request).time_in_hours == hours

    def test_round_half_up(self):
        """Test that halves round away from zero."""
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(1.49) == 1

    def test_metrics_recorded(self, checker, mvp_request):
        """Test that recommendations are reported to metrics."""
        metrics = MagicMock()
        resolver = BundleResolver(checker, metrics=metrics)

        resolver.recommend_bundle(mvp_request)

        metrics.record_bundle_recommendation.assert_called_once_with("saas-db-starter")

    def test_summary(self, resolver, mvp_request):
        """Test the compact summary."""
        summary = resolver.recommend_bundle(mvp_request).to_summary()

        assert summary == {
            "recommended": "saas-db-starter",
            "alternatives": ["saas-db-development", "saas-db-professional"],
            "compatible": True,
            "estimated_hours": 6,
        }
