"""Pydantic models for candidates, schematic analyses and run summaries."""
