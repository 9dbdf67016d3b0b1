"""Domain layer: value objects shared by every pipeline stage."""
