"""
Compatibility service for service selection checks and bundle recommendations.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from fastapi import Query
from pydantic import BaseModel, Field

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import NotFoundError

from .bundles.models import BundleRecommendationRequest
from .bundles.resolver import BundleResolver
from .engine.checker import CompatibilityChecker
from .engine.database import DatabaseCompatibilityEngine
from .engine.models import CheckOptions, DatabaseCompatibilityContext
from .rules.models import ServiceIdentifier
from .rules.repository import RuleRepository

SERVICE_NAME = "compatibility"
SERVICE_PORT = 8020


class ServiceIdentifierModel(BaseModel):
    """Service selection or pattern in API payloads."""

    type: str = Field(..., min_length=1)
    provider: str = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)
    environment: List[str] = Field(default_factory=list)
    version_constraint: Optional[str] = None

    def to_identifier(self) -> ServiceIdentifier:
        return ServiceIdentifier.create(
            self.type,
            self.provider,
            tags=self.tags,
            environment=self.environment,
            version_constraint=self.version_constraint,
        )


class CompatibilityCheckRequest(BaseModel):
    services: List[ServiceIdentifierModel] = Field(..., min_length=1)
    environment: Optional[str] = None
    include_recommendations: bool = True
    include_warnings: bool = True
    max_suggestions: Optional[int] = Field(default=None, ge=0)
    context: Dict[str, Any] = Field(default_factory=dict)


class DatabaseCheckRequest(BaseModel):
    services: List[ServiceIdentifierModel] = Field(..., min_length=1)
    context: DatabaseCompatibilityContext = Field(default_factory=DatabaseCompatibilityContext)
    include_schema_analysis: bool = False


class ConditionModel(BaseModel):
    key: str
    operator: str
    value: Any = None
    description: Optional[str] = None


class RuleCreateRequest(BaseModel):
    """Rule definition accepted by ``POST /rules``."""

    id: str
    name: str
    type: str
    severity: str
    source: ServiceIdentifierModel
    target: Optional[ServiceIdentifierModel] = None
    conditions: List[ConditionModel] = Field(default_factory=list)
    condition_logic: str = "AND"
    priority: int = 50
    weight: float = 1.0
    active: bool = True
    description: str = ""
    reason: str = ""
    resolution: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    domain: Optional[Literal["database", "saas"]] = None


class CompatibilityService(BaseService):
    """Compatibility service implementation."""
    
    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        repository: Optional[RuleRepository] = None,
        resolver_bundles: Optional[list] = None
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config or get_config(SERVICE_NAME, SERVICE_PORT))
        
        if repository is None:
            repository = RuleRepository(strict=self.config.strict_rule_ids)
            if self.config.load_default_catalog:
                repository.load()
        self.repository = repository
        
        self.database_engine = DatabaseCompatibilityEngine(self.config)
        self.checker = CompatibilityChecker(
            self.repository,
            database_engine=self.database_engine,
            metrics=self.metrics if self.config.enable_metrics else None
        )
        self.resolver = BundleResolver(
            self.checker,
            bundles=resolver_bundles,
            metrics=self.metrics if self.config.enable_metrics else None
        )
        
        self._publish_rule_counts()
        self._setup_compatibility_routes()
        
        self.logger.info(
            "Compatibility service initialized",
            rule_count=len(self.repository),
            bundle_count=len(self.resolver.list_bundles())
        )
    
    def _publish_rule_counts(self):
        stats = self.repository.get_statistics()
        self.metrics.set_rule_counts(stats["total_rules"], stats["active_rules"])
    
    def _setup_compatibility_routes(self):
        """Set up compatibility-specific routes."""
        
        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": SERVICE_NAME,
                "message": "Compatibility Service",
                "version": "1.0.0",
                "capabilities": ["compatibility_check", "database_validation", "bundle_recommendation", "rule_catalog"]
            }
        
        @self.app.post("/compatibility/check")
        async def check_compatibility(request: CompatibilityCheckRequest):
            """Pairwise compatibility check over the selected services."""
            max_suggestions = request.max_suggestions
            if max_suggestions is None:
                max_suggestions = self.config.default_max_suggestions
            
            options = CheckOptions(
                environment=request.environment,
                include_recommendations=request.include_recommendations,
                include_warnings=request.include_warnings,
                max_suggestions=max_suggestions,
                context=request.context
            )
            services = [service.to_identifier() for service in request.services]
            return self.checker.check_compatibility(services, options).to_dict()
        
        @self.app.post("/compatibility/database")
        async def check_database_compatibility(request: DatabaseCheckRequest):
            """Compatibility check with database tenancy, scaling and compliance validation."""
            services = [service.to_identifier() for service in request.services]
            result = self.checker.check_database_compatibility(services, request.context).to_dict()
            
            if request.include_schema_analysis:
                database = next((s for s in services if s.type == "database"), None)
                if database is not None:
                    result["schema_analysis"] = self.database_engine.analyze_schema(database, request.context).to_dict()
            return result
        
        @self.app.post("/bundles/recommend")
        async def recommend_bundle(request: BundleRecommendationRequest):
            """Recommend a bundle for a business scenario."""
            return self.resolver.recommend_bundle(request).to_dict()
        
        @self.app.get("/bundles")
        async def list_bundles():
            """List catalog bundles."""
            bundles = self.resolver.list_bundles()
            return {"bundles": [bundle.to_dict() for bundle in bundles], "total": len(bundles)}
        
        @self.app.get("/bundles/{bundle_id}")
        async def get_bundle(bundle_id: str):
            """Get a bundle by ID."""
            return self.resolver.get_bundle(bundle_id).to_dict()
        
        @self.app.get("/rules")
        async def get_rules(
            provider: Optional[str] = Query(None, description="Filter by provider on either side"),
            tag: Optional[str] = Query(None, description="Filter by rule tag"),
            source_type: Optional[str] = Query(None, description="Filter by source service type"),
            page: int = Query(1, ge=1, description="Page number"),
            limit: int = Query(50, ge=1, le=200, description="Items per page")
        ):
            """Get rules with optional filtering."""
            if provider:
                rules = self.repository.get_rules_for_provider(provider)
            elif tag:
                rules = self.repository.get_rules_by_tag(tag)
            elif source_type:
                rules = self.repository.get_rules_for(source_type)
            else:
                rules = list(self.repository.snapshot().rules)
            
            total = len(rules)
            start_idx = (page - 1) * limit
            return {
                "rules": [rule.to_dict() for rule in rules[start_idx:start_idx + limit]],
                "total": total,
                "page": page,
                "limit": limit
            }
        
        @self.app.post("/rules", status_code=201)
        async def create_rule(request: RuleCreateRequest):
            """Add a rule to the catalog."""
            data = request.model_dump(exclude={"domain"})
            if request.domain == "database":
                rule = self.repository.add_database_rule(data)
            elif request.domain == "saas":
                rule = self.repository.add_saas_rule(data)
            else:
                rule = self.repository.add_rule(data)
            
            self._publish_rule_counts()
            return rule.to_dict()
        
        @self.app.get("/rules/validate")
        async def validate_rules():
            """Validate the rule catalog."""
            return self.repository.validate_matrix().to_dict()
        
        @self.app.get("/rules/stats")
        async def get_stats():
            """Get rule catalog statistics."""
            return {
                "catalog": self.repository.get_statistics(),
                "bundles": len(self.resolver.list_bundles()),
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        
        @self.app.get("/rules/{rule_id}")
        async def get_rule(rule_id: str):
            """Get a rule by ID."""
            rule = self.repository.get_rule(rule_id)
            if rule is None:
                raise NotFoundError("rule", rule_id)
            return rule.to_dict()
        
        @self.app.delete("/rules/{rule_id}")
        async def delete_rule(rule_id: str):
            """Delete a rule."""
            if not self.repository.remove_rule(rule_id):
                raise NotFoundError("rule", rule_id)
            
            self._publish_rule_counts()
            return {"success": True, "message": "Rule deleted successfully"}
    
    async def _check_dependencies(self) -> Dict[str, str]:
        """Report catalog state; the service has no external dependencies."""
        return {
            "rule_catalog": "ok" if len(self.repository) else "empty",
            "bundle_catalog": "ok" if self.resolver.list_bundles() else "empty",
        }


def create_app(config: Optional[ServiceConfig] = None):
    """Create compatibility service application."""
    service = CompatibilityService(config=config)
    return service.app


if __name__ == "__main__":
    service = CompatibilityService()
    service.run()
