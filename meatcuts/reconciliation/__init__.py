"""
Drift reporting between the catalog database and the remote asset store.
"""
