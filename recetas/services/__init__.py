"""
High-level use cases for the Receta Veterinaria API.

Routers (FastAPI endpoints) and scripts call these services instead of
touching the repositories or the database session directly.
"""
