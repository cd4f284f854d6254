"""Domain layer: entities, ports and errors."""
