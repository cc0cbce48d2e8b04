"""
Catalog search for the public browsing API.

Responsibilities:
- Build one query from any combination of optional filters.
- Report the global price range and the available filter facets.
"""
