"""HTTP tile server built on FastAPI."""
