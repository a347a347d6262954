"""Item API server."""
