"""Balloon trajectory reconstruction and wind enrichment service."""
