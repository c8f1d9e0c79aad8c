"""Pydantic models for the realtime and REST surfaces."""
