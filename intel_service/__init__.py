"""FastAPI service exposing the job intelligence pipeline."""
