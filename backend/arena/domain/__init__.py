"""Domain values shared across layers."""
