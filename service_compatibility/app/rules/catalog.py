"""
Default compatibility rule catalog.

Declarative content only: database pairings, multi-tenant architecture
rules and SaaS stack rules. Rule IDs are stable and referenced by tests.
"""

from typing import Any, Dict, List, Optional, Sequence

from .models import (
    CompatibilityRule, Condition, ConditionLogic, ServiceIdentifier, WILDCARD
)

CATALOG_VERSION = "1.0.0"

S = ServiceIdentifier.create

DATABASE_SERVICES: Dict[str, ServiceIdentifier] = {
    "postgresql": S("database", "postgresql", ["relational", "multi-tenant", "acid"]),
    "mysql": S("database", "mysql", ["relational", "acid"]),
    "sqlite": S("database", "sqlite", ["relational", "embedded", "local"]),
    "mongodb": S("database", "mongodb", ["document", "nosql"]),
    "redis": S("cache", "redis", ["key-value", "session-store", "caching"]),
}

SAAS_SERVICES: Dict[str, ServiceIdentifier] = {
    "next": S("frontend", "next", ["ssr", "saas", "react"]),
    "nuxt": S("frontend", "nuxt", ["ssr", "saas", "vue"]),
    "better-auth": S("auth", "better-auth", ["typescript", "multi-tenant", "oauth"]),
    "clerk": S("auth", "clerk", ["saas", "multi-tenant", "oauth"]),
    "stripe": S("payment", "stripe", ["subscription", "global", "webhooks"]),
    "resend": S("notification", "resend", ["email", "transactional", "saas"]),
    "sentry": S("monitoring", "sentry", ["error-tracking", "performance"]),
    "posthog": S("analytics", "posthog", ["product-analytics", "feature-flags"]),
    "casbin": S("rbac", "casbin", ["tenant-aware", "policy-based", "enterprise"]),
    "hono": S("backend", "hono", ["edge", "typescript", "fast"]),
    "express": S("backend", "express", ["node", "traditional", "mature"]),
}


def _cond(key: str, operator: str, value: Any, description: Optional[str] = None) -> Condition:
    return Condition(key=key, operator=operator, value=value, description=description)


def _rule(
    id: str,
    name: str,
    type: str,
    severity: str,
    source: ServiceIdentifier,
    description: str,
    reason: str,
    resolution: str,
    category: str,
    tags: Sequence[str],
    priority: int,
    weight: float,
    target: Optional[ServiceIdentifier] = None,
    conditions: Sequence[Condition] = (),
    logic: ConditionLogic = ConditionLogic.AND,
) -> CompatibilityRule:
    return CompatibilityRule(
        id=id,
        name=name,
        type=type,
        severity=severity,
        source=source,
        target=target,
        conditions=list(conditions),
        condition_logic=logic,
        priority=priority,
        weight=weight,
        description=description,
        reason=reason,
        resolution=resolution,
        category=category,
        tags=frozenset(tags),
        version=CATALOG_VERSION,
    )


def database_rules() -> List[CompatibilityRule]:
    """Pairings between storage engines and the services built on them."""
    return [
        _rule(
            "pg-001", "PostgreSQL with Better Auth", "recommend", "info",
            S("database", "postgresql"),
            target=S("auth", "better-auth"),
            description="PostgreSQL JSONB columns fit Better Auth session and account storage",
            reason="Better Auth ships a first-class PostgreSQL adapter",
            resolution="Use the PostgreSQL adapter with connection pooling enabled",
            category="database-auth", tags=["postgresql", "auth"],
            priority=90, weight=0.9,
        ),
        _rule(
            "pg-002", "PostgreSQL session caching with Redis", "recommend", "info",
            S("database", "postgresql"),
            target=S("cache", "redis"),
            description="Redis in front of PostgreSQL offloads session and hot-path reads",
            reason="Session lookups dominate read traffic in SaaS applications",
            resolution="Store sessions in Redis and keep PostgreSQL as the system of record",
            category="database-cache", tags=["postgresql", "caching", "multi-tenant"],
            priority=80, weight=0.8,
        ),
        _rule(
            "pg-003", "PostgreSQL tenant-aware RBAC", "enhance", "info",
            S("rbac", "casbin"),
            target=S("database", "postgresql"),
            description="Casbin policies can be persisted in PostgreSQL alongside tenant data",
            reason="Keeps policy storage transactional with tenant records",
            resolution="Use the Casbin PostgreSQL adapter with a tenant domain column",
            category="database-rbac", tags=["postgresql", "rbac", "multi-tenant"],
            priority=70, weight=0.7,
        ),
        _rule(
            "mysql-001", "MySQL tenant isolation limits", "conflict", "warning",
            S("database", "mysql"),
            description="MySQL has no native row-level security; tenant filtering lives in application code",
            reason="Application-level filters are easy to bypass by mistake",
            resolution="Enforce tenant scoping in a data-access layer or move to PostgreSQL RLS",
            category="database-tenancy", tags=["mysql", "multi-tenant", "isolation"],
            priority=75, weight=0.7,
            conditions=[_cond("tenancyStrategy", "equals", "row-level-security", "Using row-level security strategy")],
        ),
        _rule(
            "sqlite-001", "SQLite with payment processing", "conflict", "critical",
            S("database", "sqlite"),
            target=S("payment", WILDCARD),
            description="SQLite is not suitable for production SaaS that processes payments",
            reason="Single-writer file storage cannot provide the durability payment records need",
            resolution="Use PostgreSQL or MySQL before enabling payments",
            category="database-payment", tags=["sqlite", "production", "payment"],
            priority=95, weight=1.0,
        ),
        _rule(
            "sqlite-002", "SQLite tenancy model", "conflict", "warning",
            S("database", "sqlite"),
            description="SQLite only supports database-per-tenant isolation effectively",
            reason="One file per tenant is the only isolation boundary SQLite offers",
            resolution="Use database-per-tenant with SQLite, or switch to PostgreSQL",
            category="database-tenancy", tags=["sqlite", "multi-tenant", "isolation"],
            priority=85, weight=0.8,
            conditions=[_cond("multiTenant", "equals", True, "Multi-tenancy enabled")],
        ),
        _rule(
            "mongo-001", "MongoDB tenant field pattern", "recommend", "info",
            S("database", "mongodb"),
            description="MongoDB supports a tenant discriminator field on every document",
            reason="Compound indexes on the tenant field keep per-tenant queries fast",
            resolution="Add a tenantId field and lead every index with it",
            category="database-tenancy", tags=["mongodb", "multi-tenant"],
            priority=70, weight=0.6,
            conditions=[_cond("multiTenant", "equals", True, "Multi-tenancy enabled")],
        ),
    ]


def multi_tenant_rules() -> List[CompatibilityRule]:
    """Isolation, scaling, auth, management and compliance rules for multi-tenant SaaS."""
    return [
        # Data isolation
        _rule(
            "mt-iso-001", "Row-Level Security Strategy", "recommend", "info",
            S("database", "postgresql", ["row-level-security", "multi-tenant"]),
            description="PostgreSQL RLS provides excellent tenant data isolation with performance benefits",
            reason="RLS policies automatically filter data by tenant without application-level changes",
            resolution="Implement PostgreSQL RLS with tenant-aware policies",
            category="multi-tenant-isolation", tags=["multi-tenant", "rls", "isolation", "postgresql"],
            priority=95, weight=1.0,
            conditions=[_cond("tenancyStrategy", "equals", "row-level-security", "Using row-level security strategy")],
        ),
        _rule(
            "mt-iso-002", "Schema-per-Tenant Strategy", "recommend", "warning",
            S("database", "postgresql", ["schema-per-tenant", "multi-tenant"]),
            description="Schema-per-tenant provides complete data isolation but requires careful scaling consideration",
            reason="Complete isolation but may not scale beyond 1000 tenants efficiently",
            resolution="Use schema-per-tenant for high-isolation requirements with <1000 tenants",
            category="multi-tenant-isolation", tags=["multi-tenant", "schema-per-tenant", "isolation"],
            priority=85, weight=0.8,
            conditions=[_cond("tenancyStrategy", "equals", "schema-per-tenant", "Using schema-per-tenant strategy")],
        ),
        _rule(
            "mt-iso-003", "Database-per-Tenant Strategy", "conflict", "warning",
            S("database", WILDCARD, ["database-per-tenant"]),
            description="Database-per-tenant provides maximum isolation but highest operational complexity",
            reason="Highest isolation but significant operational overhead and cost",
            resolution="Consider for high-security requirements or use only for largest enterprise tenants",
            category="multi-tenant-isolation", tags=["multi-tenant", "database-per-tenant", "complexity"],
            priority=70, weight=0.6,
            conditions=[
                _cond("tenancyStrategy", "equals", "database-per-tenant", "Using database-per-tenant strategy"),
                _cond("maxTenants", "version", ">100", "More than 100 tenants expected"),
            ],
        ),
        _rule(
            "mt-iso-004", "Shared Database Strategy Limitations", "conflict", "warning",
            S("database", WILDCARD, ["shared-database"]),
            description="Shared database strategy requires careful application-level tenant filtering",
            reason="Risk of data leakage without proper application-level controls",
            resolution="Implement strict tenant filtering in application code and use database constraints",
            category="multi-tenant-isolation", tags=["multi-tenant", "shared-database", "risk"],
            priority=80, weight=0.7,
            conditions=[
                _cond("tenancyStrategy", "equals", "shared-database", "Using shared database strategy"),
                _cond("isolationLevel", "equals", "strict", "Strict isolation required"),
            ],
        ),
        # Scaling
        _rule(
            "mt-scale-001", "High-Scale Multi-Tenancy with PostgreSQL", "recommend", "info",
            S("database", "postgresql", ["high-scale", "multi-tenant"]),
            description="PostgreSQL with proper indexing and RLS can scale to thousands of tenants",
            reason="PostgreSQL handles high tenant counts efficiently with proper optimization",
            resolution="Use tenant-aware indexing and connection pooling for high-scale scenarios",
            category="multi-tenant-scaling", tags=["multi-tenant", "scaling", "postgresql"],
            priority=90, weight=0.9,
            conditions=[_cond("maxTenants", "version", ">1000", "More than 1000 tenants expected")],
        ),
        _rule(
            "mt-scale-002", "Connection Pooling for Multi-Tenancy", "require", "warning",
            S("database", WILDCARD, ["multi-tenant"]),
            description="Multi-tenant applications require careful connection pooling strategy",
            reason="Without proper pooling, tenant connections can overwhelm database",
            resolution="Implement tenant-aware connection pooling with PgBouncer or similar",
            category="multi-tenant-scaling", tags=["multi-tenant", "connection-pooling", "performance"],
            priority=85, weight=0.8,
            conditions=[_cond("maxTenants", "version", ">100", "More than 100 tenants expected")],
        ),
        _rule(
            "mt-scale-003", "Cache Strategy for Multi-Tenant Applications", "recommend", "info",
            S("cache", "redis"),
            description="Multi-tenant applications benefit from tenant-aware caching strategies",
            reason="Tenant-specific caching improves performance and reduces database load",
            resolution="Implement tenant-namespaced caching with Redis",
            category="multi-tenant-scaling", tags=["multi-tenant", "caching", "performance"],
            priority=80, weight=0.75,
            conditions=[
                _cond("multiTenant", "equals", True, "Multi-tenancy enabled"),
                _cond("expectedLoad", "contains", ["medium", "high", "enterprise"], "Medium to high load expected"),
            ],
        ),
        _rule(
            "mt-scale-004", "Horizontal Sharding for Enterprise Multi-Tenancy", "recommend", "info",
            S("database", WILDCARD, ["enterprise", "enterprise-scale"]),
            description="Enterprise-scale multi-tenancy may require horizontal sharding strategies",
            reason="Single database instance may not handle enterprise tenant loads",
            resolution="Implement tenant-based sharding for enterprise deployments",
            category="multi-tenant-scaling", tags=["multi-tenant", "sharding", "enterprise"],
            priority=75, weight=0.7,
            conditions=[
                _cond("expectedLoad", "equals", "enterprise", "Enterprise load expected"),
                _cond("maxTenants", "version", ">10000", "More than 10,000 tenants expected"),
            ],
            logic=ConditionLogic.OR,
        ),
        # Authentication and authorization
        _rule(
            "mt-auth-001", "Tenant-Aware Authentication", "require", "error",
            S("auth", WILDCARD, ["multi-tenant"]),
            description="Multi-tenant applications require tenant context in authentication flow",
            reason="Users must be authenticated within specific tenant context",
            resolution="Configure authentication to include tenant identification",
            category="multi-tenant-auth", tags=["multi-tenant", "auth", "tenant-context"],
            priority=95, weight=1.0,
            conditions=[_cond("multiTenant", "equals", True, "Multi-tenancy enabled")],
        ),
        _rule(
            "mt-auth-002", "Tenant-Aware RBAC Integration", "require", "error",
            S("rbac", WILDCARD, ["multi-tenant", "tenant-aware"]),
            description="Multi-tenant RBAC requires tenant-specific role and permission management",
            reason="Roles and permissions must be scoped to specific tenants",
            resolution="Implement tenant-aware RBAC with Casbin or similar system",
            category="multi-tenant-auth", tags=["multi-tenant", "rbac", "permissions"],
            priority=90, weight=0.95,
            conditions=[_cond("multiTenant", "equals", True, "Multi-tenancy enabled")],
        ),
        _rule(
            "mt-auth-003", "Cross-Tenant Access Prevention", "require", "critical",
            S("auth", WILDCARD, ["multi-tenant"]),
            target=S("database", WILDCARD, ["multi-tenant"]),
            description="Strong multi-tenant security requires prevention of cross-tenant data access",
            reason="Data leakage between tenants is a critical security vulnerability",
            resolution="Implement strong tenant isolation at database and application levels",
            category="multi-tenant-auth", tags=["multi-tenant", "security", "isolation"],
            priority=100, weight=1.0,
            conditions=[_cond("isolationLevel", "equals", "strict", "Strict isolation required")],
        ),
        # Tenant management
        _rule(
            "mt-mgmt-001", "Tenant Provisioning Automation", "recommend", "warning",
            S("backend", WILDCARD, ["multi-tenant"]),
            description="Multi-tenant SaaS requires automated tenant provisioning and setup",
            reason="Manual tenant setup does not scale for SaaS applications",
            resolution="Implement automated tenant provisioning with database setup and configuration",
            category="multi-tenant-management", tags=["multi-tenant", "provisioning", "automation"],
            priority=85, weight=0.8,
            conditions=[_cond("expectedTenantGrowth", "contains", ["medium", "high"], "Medium to high tenant growth expected")],
        ),
        _rule(
            "mt-mgmt-002", "Tenant Data Migration Strategy", "recommend", "warning",
            S("database", WILDCARD, ["multi-tenant"]),
            description="Multi-tenant applications need strategies for tenant data migration and backup",
            reason="Tenant data migration and backup requires specific strategies per tenancy model",
            resolution="Implement tenant-aware backup and migration procedures",
            category="multi-tenant-management", tags=["multi-tenant", "migration", "backup"],
            priority=80, weight=0.75,
            conditions=[_cond("businessCritical", "equals", True, "Business critical application")],
        ),
        _rule(
            "mt-mgmt-003", "Tenant Monitoring and Analytics", "recommend", "info",
            S("monitoring", WILDCARD),
            description="Multi-tenant applications require tenant-specific monitoring and usage analytics",
            reason="Per-tenant metrics are essential for SaaS business intelligence and optimization",
            resolution="Implement tenant-aware monitoring with PostHog or similar analytics platform",
            category="multi-tenant-management", tags=["multi-tenant", "monitoring", "analytics"],
            priority=75, weight=0.7,
            conditions=[_cond("businessModel", "contains", ["subscription", "usage-based"], "Usage-based or subscription business model")],
        ),
        # Compliance
        _rule(
            "mt-comp-001", "GDPR Compliance for Multi-Tenant Data", "require", "critical",
            S("database", WILDCARD, ["multi-tenant", "gdpr"]),
            description="Multi-tenant applications must ensure GDPR compliance per tenant",
            reason="GDPR requires tenant-specific data protection and deletion capabilities",
            resolution="Implement tenant-aware GDPR compliance with data anonymization and deletion",
            category="multi-tenant-compliance", tags=["multi-tenant", "gdpr", "compliance"],
            priority=100, weight=1.0,
            conditions=[_cond("gdprCompliance", "equals", True, "GDPR compliance required")],
        ),
        _rule(
            "mt-comp-002", "Data Residency for Multi-Tenant Applications", "recommend", "warning",
            S("database", WILDCARD, ["multi-tenant", "data-residency"]),
            description="Some tenants may require data to be stored in specific geographic regions",
            reason="Regulatory requirements may mandate data residency per tenant",
            resolution="Plan for multi-region deployment or tenant-specific data residency options",
            category="multi-tenant-compliance", tags=["multi-tenant", "data-residency", "compliance"],
            priority=75, weight=0.7,
            conditions=[_cond("globalTenants", "equals", True, "Global tenants with residency requirements")],
        ),
        _rule(
            "mt-comp-003", "Audit Trail for Multi-Tenant Operations", "require", "warning",
            S("database", WILDCARD, ["multi-tenant", "audit"]),
            description="Multi-tenant applications require comprehensive audit trails per tenant",
            reason="Audit trails must be tenant-aware for compliance and security investigations",
            resolution="Implement tenant-scoped audit logging for all data operations",
            category="multi-tenant-compliance", tags=["multi-tenant", "audit", "compliance"],
            priority=85, weight=0.8,
            conditions=[_cond("auditRequired", "equals", True, "Audit requirements exist")],
        ),
    ]


def saas_rules() -> List[CompatibilityRule]:
    """Rules for the surrounding SaaS stack: frontend, auth, payments, notifications."""
    return [
        _rule(
            "saas-001", "Payments need a system of record", "depend", "error",
            S("payment", "stripe"),
            target=S("database", WILDCARD),
            description="Stripe webhooks must be persisted to reconcile subscriptions",
            reason="Subscription state has to survive webhook retries and replays",
            resolution="Add a relational database to store customers, subscriptions and webhook events",
            category="saas-payment", tags=["saas", "payment"],
            priority=90, weight=0.9,
        ),
        _rule(
            "saas-002", "Next.js with Better Auth", "recommend", "info",
            S("frontend", "next"),
            target=S("auth", "better-auth"),
            description="Better Auth integrates with Next.js route handlers and middleware",
            reason="Type-safe sessions on both server and client components",
            resolution="Mount the Better Auth handler under app/api/auth",
            category="saas-auth", tags=["saas", "auth", "typescript"],
            priority=85, weight=0.8,
        ),
        _rule(
            "saas-003", "Transactional email for onboarding", "recommend", "info",
            S("auth", WILDCARD),
            target=S("notification", WILDCARD, ["email"]),
            description="Email verification and password resets need a transactional email provider",
            reason="Auth flows stall without reliable email delivery",
            resolution="Wire the auth provider's email hooks to the notification service",
            category="saas-notification", tags=["saas", "notification"],
            priority=70, weight=0.6,
        ),
        _rule(
            "saas-004", "Error monitoring for payment flows", "enhance", "warning",
            S("payment", WILDCARD),
            target=S("monitoring", WILDCARD),
            description="Payment webhooks should report failures to error monitoring",
            reason="Silent webhook failures leave subscriptions out of sync",
            resolution="Capture webhook handler exceptions in the monitoring service",
            category="saas-observability", tags=["saas", "payment", "monitoring"],
            priority=65, weight=0.5,
        ),
        _rule(
            "saas-005", "Duplicate authentication providers", "conflict", "error",
            S("auth", "better-auth"),
            target=S("auth", "clerk"),
            description="Better Auth and Clerk both own the session lifecycle",
            reason="Two session authorities produce conflicting cookies and user records",
            resolution="Pick a single authentication provider",
            category="saas-auth", tags=["saas", "auth"],
            priority=80, weight=0.9,
        ),
        _rule(
            "saas-006", "Product analytics consent", "recommend", "suggestion",
            S("analytics", "posthog"),
            description="Product analytics should respect tenant-level consent settings",
            reason="Consent requirements differ per tenant and jurisdiction",
            resolution="Gate analytics initialisation on the tenant's consent configuration",
            category="saas-analytics", tags=["saas", "analytics", "gdpr"],
            priority=50, weight=0.4,
            conditions=[_cond("gdprCompliance", "equals", True, "GDPR compliance required")],
        ),
    ]


def default_rules() -> List[CompatibilityRule]:
    """Every rule shipped with the service, freshly constructed."""
    return [*database_rules(), *multi_tenant_rules(), *saas_rules()]
