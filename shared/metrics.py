"""
Shared metrics configuration for the Compatibility Service.
"""

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry, generate_latest
from typing import Dict, Any, Optional


class MetricsCollector:
    """Centralized metrics collector for the service.

    Each collector owns its registry so several service instances (and test
    apps) can live in one process without duplicate registrations.
    """
    
    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()
    
    def _setup_metrics(self):
        """Set up common metrics for the service."""
        
        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })
        
        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )
        
        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )
        
        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )
        
        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )
        
        self._setup_compatibility_metrics()
    
    def _setup_compatibility_metrics(self):
        """Set up compatibility-engine metrics."""
        self._metrics["compatibility_checks_total"] = Counter(
            "compatibility_checks_total",
            "Total compatibility checks",
            ["kind", "outcome"],
            registry=self.registry
        )
        
        self._metrics["compatibility_check_duration_seconds"] = Histogram(
            "compatibility_check_duration_seconds",
            "Compatibility check duration in seconds",
            ["kind"],
            registry=self.registry
        )
        
        self._metrics["bundle_recommendations_total"] = Counter(
            "bundle_recommendations_total",
            "Total bundle recommendations",
            ["bundle_id"],
            registry=self.registry
        )
        
        self._metrics["catalog_rules"] = Gauge(
            "catalog_rules",
            "Number of rules in the compatibility catalog",
            ["state"],
            registry=self.registry
        )
    
    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()
        
        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)
    
    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()
    
    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()
    
    def record_compatibility_check(self, kind: str, compatible: bool, duration: float):
        """Record the outcome and duration of a compatibility check."""
        outcome = "compatible" if compatible else "incompatible"
        self._metrics["compatibility_checks_total"].labels(kind=kind, outcome=outcome).inc()
        self._metrics["compatibility_check_duration_seconds"].labels(kind=kind).observe(duration)
    
    def record_bundle_recommendation(self, bundle_id: str):
        """Record which bundle a recommendation settled on."""
        self._metrics["bundle_recommendations_total"].labels(bundle_id=bundle_id).inc()
    
    def set_rule_counts(self, total: int, active: int):
        """Publish catalog size."""
        self._metrics["catalog_rules"].labels(state="total").set(total)
        self._metrics["catalog_rules"].labels(state="active").set(active)
    
    def render(self) -> bytes:
        """Render the registry in Prometheus exposition format."""
        return generate_latest(self.registry)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
