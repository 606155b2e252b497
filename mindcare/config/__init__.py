"""Configuration and localized strings."""
