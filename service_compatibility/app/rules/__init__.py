"""
Rules package.

Defines the compatibility rule model, the condition evaluator, the
service identifier matcher and the rule repository with its default
catalog.

Modules of interest:
- models: Data classes for rules, conditions, thresholds and service identifiers.
- conditions: Context-map evaluation of rule conditions.
- matcher: Wildcard and tag-aware service matching.
- repository: Thread-safe rule storage, queries and catalog validation.
- catalog: The rules shipped with the service.
"""
