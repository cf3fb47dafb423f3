"""
Main application package for GlamScan.

The FastAPI routers live in routers/, pydantic schemas in schemas.py, CRUD
operations in crud/, ORM models in models.py and database setup in
database.py. AI calls go through ai_core.py and the selfie matcher is in
recommender.py.

The FastAPI application instance 'app' is exported from this package
for use by ASGI servers like Uvicorn.
"""


from .main import app


__all__ = ["app"]
