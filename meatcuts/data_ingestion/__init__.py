"""
CSV interchange for the meat cuts catalog.

Responsibilities:
- Export every meat cut to a flat CSV with a fixed column order.
- Import meat cuts from a CSV, tolerating several header spellings.
- Report per-row failures without aborting the rest of the file.
"""
