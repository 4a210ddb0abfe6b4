"""Cotizaciones API - daily dollar quotations behind JWT auth.

- One row per calendar date: fecha, apertura, cierre, bcv.
- Users come from a static JSON file; roles map to allowed HTTP methods.
- Everything is served by a FastAPI app built with `cotizaciones.api.server.create_app`.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
