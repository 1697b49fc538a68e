"""HTTP API for Brand Monitor."""
