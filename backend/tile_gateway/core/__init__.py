"""Configuration and shared error types for the tile gateway."""
