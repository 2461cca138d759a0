"""Presentation adapters over the item store."""
