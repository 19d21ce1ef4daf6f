"""Pipeline services: chunking, extraction, embedding, persistence and schematic analysis."""
