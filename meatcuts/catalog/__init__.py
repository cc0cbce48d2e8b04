"""
Catalog item rules and persistence.

Responsibilities:
- Derive unique URL slugs from display names.
- Parse and format human price-range strings.
- Normalize free-text tag lists and link tags to meat cuts.
- Create, update and delete meat cuts while keeping the store constraints.
"""
