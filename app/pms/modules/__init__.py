"""
Feature modules live under this package.

Each module declares itself in `module.py` (imports, blueprints, providers, exports)
and owns its models, DTOs and services, reusing platform primitives (auth, RBAC,
audit, storage, DB session) that reach it through the composition root.
"""
