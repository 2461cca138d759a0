"""Core infrastructure: lifetime coordination and shared exceptions."""
