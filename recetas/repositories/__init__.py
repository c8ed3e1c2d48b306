"""
Persistence adapters.

``prescription_repository`` is the SQL store used by the server;
``json_storage`` is the local-only file store the client falls back to.
"""
