"""Ingestion of HVAC technical manuals into a terminology vocabulary, a parts catalog and schematic graphs."""

__version__ = "0.1.0"
