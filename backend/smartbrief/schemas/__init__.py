"""Pydantic models for the HTTP API, separate from the ORM models."""
