"""Persistence helpers: schema-driven merging and the incremental cache."""
