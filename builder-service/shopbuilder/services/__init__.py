"""
Domain services: page editing, persistence, catalog, live configuration and generation.
"""
