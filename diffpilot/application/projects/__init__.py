"""Per-user project registry."""
