"""HTTP service exposing the orchestration core (FastAPI)."""
