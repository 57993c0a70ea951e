"""
Shared error handling for the Compatibility Service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from shared.logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""
    
    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class CompatibilityServiceException(Exception):
    """Base exception for Compatibility Service components."""
    
    status_code = 400
    
    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)
    
    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(CompatibilityServiceException):
    """Validation-related errors."""
    
    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class RuleValidationError(CompatibilityServiceException):
    """A compatibility rule is structurally invalid or outside its allowed domain."""
    
    def __init__(self, message: str = "Invalid compatibility rule", details: Optional[Dict[str, Any]] = None):
        super().__init__("RULE_VALIDATION_ERROR", message, details)


class DuplicateRuleError(RuleValidationError):
    """A rule with the same ID is already present in a strict repository."""
    
    def __init__(self, rule_id: str):
        super().__init__(f"Duplicate rule ID: {rule_id}", {"rule_id": rule_id})
        self.code = "DUPLICATE_RULE"


class NotFoundError(CompatibilityServiceException):
    """Requested rule or bundle does not exist."""
    
    status_code = 404
    
    def __init__(self, kind: str, identifier: str):
        super().__init__("NOT_FOUND", f"{kind} '{identifier}' not found", {"kind": kind, "id": identifier})


class BundleCatalogError(CompatibilityServiceException):
    """Bundle catalog cannot serve a recommendation."""
    
    def __init__(self, message: str = "Bundle catalog is empty", details: Optional[Dict[str, Any]] = None):
        super().__init__("BUNDLE_CATALOG_ERROR", message, details)
