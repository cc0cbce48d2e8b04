"""
Session login for the admin endpoints.
"""
