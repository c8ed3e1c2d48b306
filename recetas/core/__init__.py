"""
Core utilities shared across the Receta Veterinaria backend and client.

This package hosts configuration (env vars, pool sizes, default veterinarian
identity), the error taxonomy and logging setup. Other layers depend on these
primitives instead of reading the environment or inventing their own errors.
"""
