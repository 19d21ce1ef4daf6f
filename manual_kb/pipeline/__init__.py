"""Per-document pipeline orchestration."""
