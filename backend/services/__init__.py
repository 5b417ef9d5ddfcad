"""Symptom-check pipeline services."""
