"""Per-visitor portfolio layout personalization service."""
