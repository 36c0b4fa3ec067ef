"""
Features package — each sub-package encapsulates a self-contained feature.

Convention:
  features/<feature_name>/
    __init__.py      — public API re-exports
    models.py        — data models specific to this feature
    registry.py      — in-memory state management (if applicable)
    tracker.py       — runtime tracking / observability (if applicable)
    ...              — any other feature-specific modules
"""
