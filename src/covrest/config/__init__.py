"""Configuration layer — settings with config-file lookup, logging."""
