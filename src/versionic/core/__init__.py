"""Record models (no storage imports)."""
