"""HTTP API for the medical claim registry."""
