"""
Unit tests for service identifier matching.
"""

import pytest

from service_compatibility.app.rules.matcher import matches, matches_any
from service_compatibility.app.rules.models import ServiceIdentifier


class TestMatches:
    """Test cases for pattern matching."""

    @pytest.fixture
    def postgres(self):
        """Create a concrete database service."""
        return ServiceIdentifier.create("database", "postgresql", ["multi-tenant", "acid"], ["production"])

    def test_reflexive(self, postgres):
        """Test that a service matches a pattern built from itself."""
        pattern = ServiceIdentifier.create("database", "postgresql", ["acid"])

        assert matches(postgres, postgres) is True
        assert matches(pattern, postgres) is True

    def test_full_wildcard_matches_everything(self, postgres):
        """Test that */* without tags matches any service."""
        wildcard = ServiceIdentifier.create("*", "*")

        assert matches(wildcard, postgres) is True
        assert matches(wildcard, ServiceIdentifier.create("payment", "stripe")) is True

    def test_provider_wildcard(self, postgres):
        """Test type match with wildcard provider."""
        assert matches(ServiceIdentifier.create("database", "*"), postgres) is True
        assert matches(ServiceIdentifier.create("cache", "*"), postgres) is False

    def test_provider_mismatch(self, postgres):
        """Test exact provider match."""
        assert matches(ServiceIdentifier.create("database", "mysql"), postgres) is False

    def test_tags_need_one_in_common(self, postgres):
        """Test tag intersection semantics."""
        assert matches(ServiceIdentifier.create("database", "*", ["acid", "unrelated"]), postgres) is True
        assert matches(ServiceIdentifier.create("database", "*", ["document"]), postgres) is False

    def test_environment_intersection(self, postgres):
        """Test environment intersection semantics."""
        in_prod = ServiceIdentifier.create("database", "*", environment=["production", "staging"])
        in_dev = ServiceIdentifier.create("database", "*", environment=["development"])

        assert matches(in_prod, postgres) is True
        assert matches(in_dev, postgres) is False

    def test_matches_any(self, postgres):
        """Test matching against several services."""
        stripe = ServiceIdentifier.create("payment", "stripe")

        assert matches_any(ServiceIdentifier.create("payment", "*"), postgres, stripe) is True
        assert matches_any(ServiceIdentifier.create("search", "*"), postgres, stripe) is False
