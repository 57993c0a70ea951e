"""
Unit tests for the rule repository.
"""

import threading

import pytest

from service_compatibility.app.rules.catalog import default_rules
from service_compatibility.app.rules.models import CompatibilityRule, ServiceIdentifier, Severity
from service_compatibility.app.rules.repository import RuleRepository
from shared.errors import DuplicateRuleError, NotFoundError, RuleValidationError


def make_rule(rule_id, source, target=None, rule_type="require", **kwargs):
    return CompatibilityRule(
        id=rule_id,
        name=kwargs.pop("name", f"Rule {rule_id}"),
        type=rule_type,
        severity=kwargs.pop("severity", "warning"),
        source=ServiceIdentifier.create(*source),
        target=ServiceIdentifier.create(*target) if target else None,
        **kwargs
    )


class TestRuleRepository:
    """Test cases for RuleRepository."""

    @pytest.fixture
    def repository(self):
        """Create a repository with the default catalog."""
        repository = RuleRepository()
        repository.load()
        return repository

    def test_load_default_catalog(self, repository):
        """Test loading the shipped catalog."""
        assert len(repository) == len(default_rules())
        assert repository.get_rule("mt-iso-001") is not None

    def test_default_catalog_is_valid(self, repository):
        """Test that the shipped catalog passes validation without warnings."""
        result = repository.validate_matrix()

        assert result.valid is True
        assert result.issues == []
        assert result.warnings == []

    def test_duplicate_id_reported_once(self):
        """Test that a duplicated ID yields exactly one issue."""
        repository = RuleRepository()
        repository.add_rule(make_rule("dup-1", ("auth", "clerk")))
        repository.add_rule(make_rule("dup-1", ("auth", "clerk")))

        result = repository.validate_matrix()

        assert result.valid is False
        duplicate_issues = [i for i in result.issues if "Duplicate rule ID" in i.message]
        assert len(duplicate_issues) == 1
        assert duplicate_issues[0].rule_ids == ["dup-1"]

    def test_duplicates_are_retained(self):
        """Test that a non-strict repository keeps both copies."""
        repository = RuleRepository()
        repository.add_rule(make_rule("dup-1", ("auth", "clerk")))
        repository.add_rule(make_rule("dup-1", ("auth", "clerk")))

        assert len(repository) == 2

    def test_strict_repository_rejects_duplicates(self):
        """Test that strict mode raises on duplicate IDs."""
        repository = RuleRepository(strict=True)
        repository.add_rule(make_rule("dup-1", ("auth", "clerk")))

        with pytest.raises(DuplicateRuleError):
            repository.add_rule(make_rule("dup-1", ("auth", "clerk")))
        assert len(repository) == 1

    def test_two_node_cycle_detected(self):
        """Test mutual requirement detection."""
        repository = RuleRepository([
            make_rule("a-b", ("auth", "a"), ("database", "b")),
            make_rule("b-a", ("database", "b"), ("auth", "a")),
        ])

        result = repository.validate_matrix()

        cycles = [i for i in result.issues if i.kind == "circular-dependency"]
        assert len(cycles) == 1
        assert set(cycles[0].rule_ids) == {"a-b", "b-a"}

    def test_three_node_cycle_detected(self):
        """Test cycles longer than two nodes."""
        repository = RuleRepository([
            make_rule("a-b", ("auth", "a"), ("database", "b")),
            make_rule("b-c", ("database", "b"), ("cache", "c"), rule_type="depend"),
            make_rule("c-a", ("cache", "c"), ("auth", "a")),
        ])

        result = repository.validate_matrix()

        cycles = [i for i in result.issues if i.kind == "circular-dependency"]
        assert len(cycles) == 1
        assert "auth:a -> database:b -> cache:c -> auth:a" in cycles[0].message

    def test_non_dependency_rules_do_not_form_cycles(self):
        """Test that only require/depend edges count."""
        repository = RuleRepository([
            make_rule("a-b", ("auth", "a"), ("database", "b"), rule_type="recommend"),
            make_rule("b-a", ("database", "b"), ("auth", "a"), rule_type="conflict"),
        ])

        assert not [i for i in repository.validate_matrix().issues if i.kind == "circular-dependency"]

    def test_coverage_warning_for_uncovered_provider(self):
        """Test that database providers need a multi-tenant rule."""
        repository = RuleRepository([
            make_rule("cockroach-1", ("database", "cockroachdb"), rule_type="recommend"),
        ])

        result = repository.validate_matrix()

        assert result.valid is True
        assert len(result.warnings) == 1
        assert result.warnings[0].severity == Severity.WARNING
        assert "cockroachdb" in result.warnings[0].message

    def test_add_database_rule_enforces_source_domain(self):
        """Test the database rule constructor."""
        repository = RuleRepository()

        rule = repository.add_database_rule(make_rule("db-ok", ("cache", "redis")))
        assert repository.get_rule("db-ok") is rule

        with pytest.raises(RuleValidationError):
            repository.add_database_rule(make_rule("db-bad", ("payment", "stripe")))
        assert repository.get_rule("db-bad") is None

    def test_add_saas_rule_enforces_source_domain(self):
        """Test the SaaS rule constructor."""
        repository = RuleRepository()

        repository.add_saas_rule(
            id="saas-ok",
            name="Search needs auth",
            type="depend",
            severity="info",
            source=ServiceIdentifier.create("search", "meilisearch"),
        )
        assert repository.get_rule("saas-ok") is not None

        with pytest.raises(RuleValidationError):
            repository.add_saas_rule(make_rule("saas-bad", ("database", "postgresql")))

    def test_add_rule_from_mapping(self):
        """Test building a rule from a plain mapping."""
        repository = RuleRepository()

        rule = repository.add_rule({
            "id": "map-1",
            "name": "Mapped rule",
            "type": "conflict",
            "severity": "error",
            "source": {"type": "auth", "provider": "clerk"},
            "conditions": [{"key": "maxTenants", "operator": "version", "value": ">10"}],
            "conditionLogic": "OR",
        })

        assert rule.condition_logic.value == "OR"
        assert str(rule.conditions[0].value) == ">10"

    def test_invalid_rule_rejected(self):
        """Test validating constructor."""
        with pytest.raises(RuleValidationError):
            make_rule("bad-priority", ("auth", "clerk"), priority=150)
        with pytest.raises(RuleValidationError):
            make_rule("bad-type", ("auth", "clerk"), rule_type="forbid")

    def test_remove_rule(self, repository):
        """Test rule removal."""
        assert repository.remove_rule("pg-001") is True
        assert repository.get_rule("pg-001") is None
        assert repository.remove_rule("pg-001") is False

    def test_set_active(self, repository):
        """Test that inactive rules are retained but not returned by queries."""
        repository.set_active("sqlite-001", False)

        assert repository.get_rule("sqlite-001").active is False
        assert "sqlite-001" not in [r.id for r in repository.get_rules_for_provider("sqlite")]

        with pytest.raises(NotFoundError):
            repository.set_active("missing", True)

    def test_snapshot_is_isolated_from_later_mutation(self, repository):
        """Test copy-on-read snapshots."""
        snapshot = repository.snapshot()
        repository.add_rule(make_rule("late-1", ("auth", "clerk")))

        assert len(snapshot) == len(default_rules())
        assert repository.snapshot().revision > snapshot.revision

    def test_get_rules_for(self, repository):
        """Test filtering by source and target type."""
        rules = repository.get_rules_for("database", "payment")

        assert [r.id for r in rules] == ["sqlite-001"]
        assert all(r.source.type in ("database", "*") for r in repository.get_rules_for("database"))

    def test_get_rules_for_provider_sorted_by_priority(self, repository):
        """Test provider lookup order."""
        rules = repository.get_rules_for_provider("sqlite")

        assert [r.id for r in rules] == ["sqlite-001", "sqlite-002"]

    def test_get_rules_by_tag_and_category(self, repository):
        """Test tag and category lookups."""
        assert "mt-comp-002" in [r.id for r in repository.get_rules_by_tag("data-residency")]
        assert {r.id for r in repository.get_rules_by_category("multi-tenant-auth")} == {
            "mt-auth-001", "mt-auth-002", "mt-auth-003"
        }

    def test_get_rules_for_strategy(self, repository):
        """Test tenancy strategy lookup."""
        ids = [r.id for r in repository.get_rules_for_strategy("schema-per-tenant")]

        assert "mt-iso-002" in ids
        assert "mt-iso-001" not in ids

    def test_get_critical_rules(self, repository):
        """Test critical rule lookup."""
        rules = repository.get_critical_rules()

        assert rules
        assert all(r.severity == Severity.CRITICAL for r in rules)
        assert "mt-auth-003" in [r.id for r in rules]

    def test_get_rules_for_scale(self, repository):
        """Test tenant-count thresholds."""
        ids = [r.id for r in repository.get_rules_for_scale(5000)]

        assert "mt-scale-001" in ids
        assert "mt-scale-002" in ids
        assert "mt-scale-004" not in ids
        assert "mt-scale-001" not in [r.id for r in repository.get_rules_for_scale(50)]

    @pytest.mark.parametrize("max_tenants", [1, 50, 5000, 50000])
    def test_get_rules_for_scale_keeps_rules_without_threshold(self, repository, max_tenants):
        """Test that rules without a tenant-count condition apply at any scale."""
        ids = {r.id for r in repository.get_rules_for_scale(max_tenants)}
        unconditioned = {
            r.id for r in repository.snapshot().active_rules
            if not any(c.key == "maxTenants" for c in r.conditions)
        }

        assert "pg-001" in ids
        assert "mt-scale-003" in ids
        assert unconditioned <= ids

    def test_queries_keep_no_per_argument_state(self, repository):
        """Test that arbitrary lookup arguments do not accumulate in the repository."""
        state = dict(vars(repository))

        for n in range(500):
            assert repository.get_rules_for_provider(f"p{n}") == []
            repository.get_rules_for_scale(n)

        assert vars(repository) == state

    def test_queries_see_later_mutations(self, repository):
        """Test that lookups always read the current catalog."""
        assert repository.get_rules_for_provider("workos") == []

        repository.add_rule(make_rule("late-1", ("auth", "workos")))

        assert [r.id for r in repository.get_rules_for_provider("workos")] == ["late-1"]

    def test_get_rules_by_category_is_exact(self, repository):
        """Test that category lookup does not match on substrings."""
        assert repository.get_rules_by_category("multi-tenant") == []
        assert repository.get_rules_by_category("auth") == []
        assert {r.id for r in repository.get_rules_by_category("saas-auth")} == {"saas-002", "saas-005"}

    def test_statistics(self, repository):
        """Test catalog statistics."""
        stats = repository.get_statistics()

        assert stats["total_rules"] == len(default_rules())
        assert stats["active_rules"] == stats["total_rules"]
        assert stats["by_type"]["recommend"] > 0
        assert "postgresql" in stats["providers"]
        assert "*" not in stats["providers"]

    def test_concurrent_writers(self):
        """Test that concurrent adds are all kept."""
        repository = RuleRepository()

        def add_batch(prefix):
            for index in range(50):
                repository.add_rule(make_rule(f"{prefix}-{index}", ("auth", "clerk")))

        threads = [threading.Thread(target=add_batch, args=(f"t{n}",)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(repository) == 200
        assert repository.validate_matrix().valid is True
