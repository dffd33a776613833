"""Pydantic API models and SQLAlchemy ORM models."""
