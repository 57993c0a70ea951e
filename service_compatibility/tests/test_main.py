"""
Unit tests for the Compatibility service API.
"""

import pytest
from fastapi.testclient import TestClient

from service_compatibility.app.main import CompatibilityService, create_app
from service_compatibility.app.rules.catalog import default_rules
from shared.config import get_config


@pytest.fixture
def client():
    """Create test client."""
    return TestClient(create_app())


@pytest.fixture
def custom_rule():
    """Rule payload for the create endpoint."""
    return {
        "id": "api-001",
        "name": "Nuxt with Clerk",
        "type": "conflict",
        "severity": "critical",
        "source": {"type": "frontend", "provider": "nuxt"},
        "target": {"type": "auth", "provider": "clerk"},
        "description": "Clerk has no first-party Nuxt SDK",
        "reason": "Community adapters lag behind Clerk releases",
        "tags": ["saas", "auth"],
    }


class TestCompatibilityService:
    """Test cases for CompatibilityService."""

    def test_service_wiring(self):
        """Test that the service loads both catalogs."""
        service = CompatibilityService()

        assert service.service_name == "compatibility"
        assert len(service.repository) == len(default_rules())
        assert len(service.resolver.list_bundles()) == 4
        assert service.checker.database_engine is service.database_engine

    def test_empty_catalog_config(self):
        """Test starting without the default catalog."""
        config = get_config("compatibility", 8020, load_default_catalog=False)
        service = CompatibilityService(config=config)

        assert len(service.repository) == 0

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "compatibility"
        assert data["version"] == "1.0.0"

    def test_health_check(self, client):
        """Test health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {"rule_catalog": "ok", "bundle_catalog": "ok"}

    def test_metrics_endpoint(self, client):
        """Test Prometheus exposition."""
        client.get("/health")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "catalog_rules" in response.text
        assert "http_requests_total" in response.text

    def test_request_id_echoed(self, client):
        """Test request correlation header."""
        response = client.get("/", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"
        assert client.get("/").headers["X-Request-ID"]


class TestCompatibilityEndpoints:
    """Test cases for the check endpoints."""

    def test_check_incompatible_selection(self, client):
        """Test a pairwise check with a critical conflict."""
        response = client.post("/compatibility/check", json={
            "services": [
                {"type": "database", "provider": "sqlite"},
                {"type": "payment", "provider": "stripe"},
            ]
        })

        assert response.status_code == 200
        data = response.json()
        assert data["compatible"] is False
        assert data["critical_issues"][0]["rule_id"] == "sqlite-001"
        assert data["critical_issues"][0]["severity"] == "critical"
        assert data["summary"]["total_services"] == 2
        assert data["matrix_version"].startswith("1.0.0-r")

    def test_check_with_context(self, client):
        """Test that the request context reaches rule conditions."""
        services = [
            {"type": "database", "provider": "mysql"},
            {"type": "frontend", "provider": "next"},
        ]

        plain = client.post("/compatibility/check", json={"services": services}).json()
        rls = client.post("/compatibility/check", json={
            "services": services,
            "context": {"tenancyStrategy": "row-level-security"},
        }).json()

        assert "mysql-001" not in [i["rule_id"] for i in plain["issues"]]
        assert "mysql-001" in [i["rule_id"] for i in rls["issues"]]

    def test_check_options(self, client):
        """Test result shaping options."""
        response = client.post("/compatibility/check", json={
            "services": [
                {"type": "database", "provider": "postgresql"},
                {"type": "auth", "provider": "better-auth"},
                {"type": "cache", "provider": "redis"},
            ],
            "include_recommendations": False,
        })

        assert response.json()["recommendations"] == []

    def test_check_requires_services(self, client):
        """Test request validation."""
        response = client.post("/compatibility/check", json={"services": []})
        assert response.status_code == 422

    def test_database_check(self, client):
        """Test the database-aware check with schema analysis."""
        response = client.post("/compatibility/database", json={
            "services": [
                {"type": "database", "provider": "postgresql", "tags": ["multi-tenant"]},
                {"type": "auth", "provider": "better-auth", "tags": ["multi-tenant"]},
            ],
            "context": {"multi_tenancy": {"strategy": "schema-per-tenant", "max_tenants": 2000}},
            "include_schema_analysis": True,
        })

        assert response.status_code == 200
        data = response.json()
        assert data["domain_validation"]["score"] == 90
        assert data["overall_score"] <= 90
        assert data["schema_analysis"]["partitioning_required"] is True

    def test_database_check_embedded_engine(self, client):
        """Test that an unsuitable database yields a migration plan."""
        response = client.post("/compatibility/database", json={
            "services": [{"type": "database", "provider": "sqlite"}],
            "context": {"multi_tenancy": {"max_tenants": 500}},
        })

        data = response.json()
        assert data["compatible"] is False
        assert data["domain_validation"]["migration_plan"]["target"] == "postgresql"

    def test_database_check_rejects_unknown_strategy(self, client):
        """Test context validation."""
        response = client.post("/compatibility/database", json={
            "services": [{"type": "database", "provider": "postgresql"}],
            "context": {"multi_tenancy": {"strategy": "table-per-tenant"}},
        })
        assert response.status_code == 422


class TestBundleEndpoints:
    """Test cases for the bundle endpoints."""

    def test_list_bundles(self, client):
        """Test listing bundles."""
        data = client.get("/bundles").json()
        assert data["total"] == 4
        assert data["bundles"][0]["id"] == "saas-db-starter"

    def test_get_bundle(self, client):
        """Test getting a bundle."""
        response = client.get("/bundles/saas-db-enterprise")
        assert response.status_code == 200
        assert response.json()["requirements"]["max_tenants"] == 50000

    def test_get_unknown_bundle(self, client):
        """Test getting a missing bundle."""
        response = client.get("/bundles/saas-db-unknown")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_recommend_bundle(self, client):
        """Test bundle recommendation."""
        response = client.post("/bundles/recommend", json={
            "business_model": "mvp",
            "expected_tenants": 5,
            "team_size": "solo",
            "budget": "low",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["recommended"]["id"] == "saas-db-starter"
        assert len(data["alternatives"]) == 2
        assert data["estimated_setup"]["time_in_hours"] == 6
        assert data["compatibility"]["compatible"] is True

    def test_recommend_bundle_validation(self, client):
        """Test recommendation request validation."""
        response = client.post("/bundles/recommend", json={"business_model": "nonprofit"})
        assert response.status_code == 422


class TestRuleEndpoints:
    """Test cases for the rule catalog endpoints."""

    def test_get_rules(self, client):
        """Test listing rules."""
        data = client.get("/rules").json()
        assert data["total"] == len(default_rules())
        assert data["page"] == 1

    def test_get_rules_filtered_and_paged(self, client):
        """Test filters and pagination."""
        by_provider = client.get("/rules", params={"provider": "sqlite"}).json()
        assert [r["id"] for r in by_provider["rules"]] == ["sqlite-001", "sqlite-002"]

        paged = client.get("/rules", params={"tag": "multi-tenant", "limit": 5, "page": 2}).json()
        assert len(paged["rules"]) == 5
        assert paged["total"] > 10

    def test_get_rule(self, client):
        """Test getting a rule."""
        response = client.get("/rules/mt-scale-001")
        assert response.status_code == 200
        assert response.json()["conditions"][0]["value"] == ">1000"

    def test_get_unknown_rule(self, client):
        """Test getting a missing rule."""
        assert client.get("/rules/none-001").status_code == 404

    def test_create_rule(self, client, custom_rule):
        """Test adding a rule that changes check outcomes."""
        response = client.post("/rules", json=custom_rule)
        assert response.status_code == 201
        assert response.json()["id"] == "api-001"

        check = client.post("/compatibility/check", json={
            "services": [
                {"type": "frontend", "provider": "nuxt"},
                {"type": "auth", "provider": "clerk"},
            ]
        }).json()
        assert check["compatible"] is False

    def test_create_rule_invalid_type(self, client, custom_rule):
        """Test rule validation errors."""
        custom_rule["type"] = "forbid"
        response = client.post("/rules", json=custom_rule)
        assert response.status_code == 400
        assert response.json()["code"] == "RULE_VALIDATION_ERROR"

    def test_create_database_rule_checks_source(self, client, custom_rule):
        """Test the database rule constructor through the API."""
        custom_rule["domain"] = "database"
        response = client.post("/rules", json=custom_rule)
        assert response.status_code == 400

        custom_rule["domain"] = "saas"
        assert client.post("/rules", json=custom_rule).status_code == 201

    def test_duplicate_rule_in_strict_mode(self, custom_rule):
        """Test strict duplicate handling."""
        client = TestClient(create_app(get_config("compatibility", 8020, strict_rule_ids=True)))
        custom_rule["id"] = "pg-001"

        response = client.post("/rules", json=custom_rule)
        assert response.status_code == 400
        assert response.json()["code"] == "DUPLICATE_RULE"

    def test_validate_rules(self, client):
        """Test catalog validation."""
        data = client.get("/rules/validate").json()
        assert data["valid"] is True
        assert data["issues"] == []

    def test_validate_rules_reports_duplicates(self, client, custom_rule):
        """Test that duplicates in a lenient catalog are reported."""
        custom_rule["id"] = "pg-001"
        client.post("/rules", json=custom_rule)

        data = client.get("/rules/validate").json()
        assert data["valid"] is False
        assert data["issues"][0]["message"] == "Duplicate rule ID: pg-001"

    def test_rule_stats(self, client):
        """Test catalog statistics."""
        data = client.get("/rules/stats").json()
        assert data["catalog"]["total_rules"] == len(default_rules())
        assert data["bundles"] == 4
        assert "timestamp" in data

    def test_delete_rule(self, client):
        """Test deleting a rule."""
        response = client.delete("/rules/sqlite-001")
        assert response.status_code == 200
        assert response.json()["success"] is True

        assert client.delete("/rules/sqlite-001").status_code == 404
