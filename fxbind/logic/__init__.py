"""Registry, resolution, dispatch and verification logic."""
