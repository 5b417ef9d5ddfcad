"""ArangoDB connection helpers."""
