"""Domain services built on the core infrastructure layer."""
