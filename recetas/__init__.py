"""Receta Veterinaria: prescription API, SQL store and fallback client."""
