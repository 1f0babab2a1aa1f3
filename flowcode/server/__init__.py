"""HTTP API for flowcode (FastAPI)."""
