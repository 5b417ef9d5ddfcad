"""Curated knowledge-base seed files."""
