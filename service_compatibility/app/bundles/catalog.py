"""
Default bundle catalog.

Order matters: ties in the resolver keep this insertion order.
"""

from typing import List

from ..rules.models import ServiceIdentifier
from .models import Bundle, BundleDeployment, BundleFeatures, BundleRequirements, BundleServices

S = ServiceIdentifier.create


def default_bundles() -> List[Bundle]:
    """The starter, professional, enterprise and development bundles."""
    return [
        Bundle(
            id="saas-db-starter",
            name="SaaS Database Starter",
            display_name="SaaS Database Starter Bundle",
            description="Essential database stack for SaaS MVP with PostgreSQL and basic authentication",
            category="starter",
            services=BundleServices(
                core=[
                    S("database", "postgresql", ["multi-tenant", "mvp"]),
                    S("auth", "better-auth", ["typescript", "simple"]),
                ],
                optional=[S("cache", "redis", ["session-store"])],
            ),
            requirements=BundleRequirements(
                min_tenants=1, max_tenants=100, expected_load="low", compliance=[], budget="low"
            ),
            features=BundleFeatures(multi_tenancy=True),
            deployment=BundleDeployment(
                environments=["development", "staging", "production"],
                cloud_providers=["aws", "gcp", "azure", "digitalocean"],
                estimated_cost="$50-150/month",
                setup_complexity="simple",
            ),
        ),
        Bundle(
            id="saas-db-professional",
            name="SaaS Database Professional",
            display_name="SaaS Database Professional Bundle",
            description="Production-ready database stack with advanced multi-tenancy, caching, and monitoring",
            category="professional",
            services=BundleServices(
                core=[
                    S("database", "postgresql", ["multi-tenant", "production"]),
                    S("cache", "redis", ["caching", "session-store"]),
                    S("auth", "better-auth", ["typescript", "oauth"]),
                    S("rbac", "casbin", ["tenant-aware"]),
                ],
                optional=[
                    S("monitoring", "sentry", ["error-tracking"]),
                    S("analytics", "posthog", ["product-analytics"]),
                ],
            ),
            requirements=BundleRequirements(
                min_tenants=50, max_tenants=1000, expected_load="medium", compliance=["gdpr"], budget="medium"
            ),
            features=BundleFeatures(
                multi_tenancy=True, caching=True, monitoring=True, analytics=True, rbac=True, encryption=True
            ),
            deployment=BundleDeployment(
                environments=["staging", "production"],
                cloud_providers=["aws", "gcp", "azure"],
                estimated_cost="$200-500/month",
                setup_complexity="moderate",
            ),
        ),
        Bundle(
            id="saas-db-enterprise",
            name="SaaS Database Enterprise",
            display_name="SaaS Database Enterprise Bundle",
            description="Enterprise-grade database stack with advanced features, compliance, and global distribution",
            category="enterprise",
            services=BundleServices(
                core=[
                    S("database", "postgresql", ["multi-tenant", "enterprise", "encryption"]),
                    S("cache", "redis", ["cluster", "high-availability"]),
                    S("auth", "better-auth", ["typescript", "sso", "mfa"]),
                    S("rbac", "casbin", ["enterprise", "complex-policies"]),
                    S("monitoring", "sentry", ["enterprise"]),
                    S("analytics", "posthog", ["enterprise"]),
                ],
                optional=[S("search", "elasticsearch", ["enterprise-search"])],
            ),
            requirements=BundleRequirements(
                min_tenants=1000,
                max_tenants=50000,
                expected_load="enterprise",
                compliance=["gdpr", "hipaa", "soc2"],
                budget="high",
            ),
            features=BundleFeatures(
                multi_tenancy=True, caching=True, monitoring=True, analytics=True, rbac=True, encryption=True
            ),
            deployment=BundleDeployment(
                environments=["staging", "production", "disaster-recovery"],
                cloud_providers=["aws", "gcp", "azure"],
                estimated_cost="$1000-5000/month",
                setup_complexity="complex",
            ),
        ),
        Bundle(
            id="saas-db-development",
            name="SaaS Database Development",
            display_name="SaaS Database Development Bundle",
            description="Lightweight database stack optimized for local development and testing",
            category="development",
            services=BundleServices(
                core=[
                    S("database", "sqlite", ["development", "local", "embedded"]),
                    S("auth", "better-auth", ["simple", "development"]),
                ],
            ),
            requirements=BundleRequirements(
                min_tenants=1, max_tenants=10, expected_load="low", compliance=[], budget="low"
            ),
            features=BundleFeatures(),
            deployment=BundleDeployment(
                environments=["development"],
                cloud_providers=[],
                estimated_cost="$0/month",
                setup_complexity="simple",
            ),
        ),
    ]
