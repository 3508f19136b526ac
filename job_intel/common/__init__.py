"""Shared building blocks for the job intelligence pipeline."""
