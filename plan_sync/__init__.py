"""Training plan session matching service."""
