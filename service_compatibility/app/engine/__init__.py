"""
Engine package.

- checker: Pairwise rule checks, dependency inference and scoring.
- database: Capability-based database validation and migration planning.
- models: Result records and the database context model.
"""
