"""
Meat cuts catalog engine.

Responsibilities:
- Keep the relational catalog, its CSV export and the remote image store consistent.
- Serve the browsing search/filter API and the admin API.
"""
