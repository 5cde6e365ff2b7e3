"""Feature engineering helpers (technical indicators)."""
