"""Pydantic models for scenarios, session state and the generator's delta."""
