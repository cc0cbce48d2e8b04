"""
Relational store for the meat cuts catalog.

Responsibilities:
- Declare the ORM schema (meat cuts, tags, association tables, sync metadata).
- Build the engine / session factory from configuration.
- Track per-concern "last updated" timestamps.
"""
