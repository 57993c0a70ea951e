"""
Integration tests for the Compatibility service flow.
"""

import pytest
from fastapi.testclient import TestClient

from service_compatibility.app.main import create_app


class TestCompatibilityFlow:
    """Integration tests for the Compatibility service flow."""

    @pytest.fixture
    def client(self):
        """Create test client over a fresh service."""
        return TestClient(create_app())

    @pytest.fixture
    def saas_stack(self):
        """Service selection for a multi-tenant SaaS."""
        return [
            {"type": "frontend", "provider": "next"},
            {"type": "database", "provider": "postgresql", "tags": ["multi-tenant"]},
            {"type": "auth", "provider": "better-auth", "tags": ["multi-tenant"]},
            {"type": "payment", "provider": "stripe"},
        ]

    def test_recommend_then_validate_bundle(self, client):
        """Test recommending a bundle and checking its services directly."""
        recommendation = client.post("/bundles/recommend", json={
            "business_model": "subscription",
            "expected_users": 4000,
            "expected_tenants": 300,
            "team_size": "medium",
            "budget": "medium",
            "compliance": ["gdpr"],
            "features": ["multi-tenancy", "caching", "rbac"],
        }).json()

        bundle_id = recommendation["recommended"]["id"]
        assert bundle_id == "saas-db-professional"

        bundle = client.get(f"/bundles/{bundle_id}").json()
        services = bundle["services"]["core"] + bundle["services"]["optional"]

        check = client.post("/compatibility/database", json={
            "services": services,
            "context": {
                "multi_tenancy": {"max_tenants": 300},
                "compliance": {"gdpr_compliance": True, "encryption": True, "audit_logging": True},
            },
        }).json()

        assert check["compatible"] is True
        assert check["compatible"] == recommendation["compatibility"]["compatible"]

    def test_custom_rule_lifecycle(self, client, saas_stack):
        """Test that adding and removing a rule changes check outcomes."""
        baseline = client.post("/compatibility/check", json={"services": saas_stack}).json()
        assert baseline["compatible"] is True

        created = client.post("/rules", json={
            "id": "flow-001",
            "name": "Stripe region restriction",
            "type": "conflict",
            "severity": "critical",
            "source": {"type": "payment", "provider": "stripe"},
            "target": {"type": "database", "provider": "*"},
            "conditions": [{"key": "region", "operator": "regex", "value": "^cn-"}],
            "description": "Stripe is unavailable in the selected region",
        })
        assert created.status_code == 201

        other_region = client.post("/compatibility/check", json={
            "services": saas_stack, "context": {"region": "eu-west-1"},
        }).json()
        restricted = client.post("/compatibility/check", json={
            "services": saas_stack, "context": {"region": "cn-north-1"},
        }).json()

        assert other_region["compatible"] is True
        assert restricted["compatible"] is False
        assert restricted["overall_score"] < baseline["overall_score"]

        assert client.delete("/rules/flow-001").status_code == 200
        after = client.post("/compatibility/check", json={
            "services": saas_stack, "context": {"region": "cn-north-1"},
        }).json()
        assert after["compatible"] is True

    def test_missing_dependencies_reported(self, client):
        """Test dependency inference across the API."""
        check = client.post("/compatibility/check", json={
            "services": [
                {"type": "rbac", "provider": "casbin"},
                {"type": "frontend", "provider": "next"},
            ]
        }).json()

        missing = [f"{s['type']}:{s['provider']}" for s in check["missing_dependencies"]]
        assert missing == ["auth:better-auth"]

    def test_catalog_stats_follow_mutations(self, client):
        """Test that statistics and metrics track the catalog."""
        before = client.get("/rules/stats").json()["catalog"]

        client.delete("/rules/saas-006")
        after = client.get("/rules/stats").json()["catalog"]

        assert after["total_rules"] == before["total_rules"] - 1
        assert after["revision"] > before["revision"]

        metrics = client.get("/metrics").text
        assert f'catalog_rules{{state="total"}} {float(after["total_rules"])}' in metrics
