"""
Compatibility Service package.

Judges whether a selection of infrastructure services fits together and
recommends a predefined service bundle for a business scenario. It
provides:

- app.main: API surface for compatibility checks, bundles and rules.
- app.rules: Rule model, condition evaluation, matching and the rule repository.
- app.engine: Pairwise compatibility checker and database validation.
- app.bundles: Bundle catalog and the bundle resolver.

Guidelines:
- Every check is a pure function of its inputs and the catalog snapshot.
- Repositories and resolvers are constructed per caller, never module-global.
"""
