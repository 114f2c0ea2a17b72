"""Configuration loading for the audit tool."""
