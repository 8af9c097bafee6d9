"""HTTP API layer: FastAPI router and Pydantic schemas."""
