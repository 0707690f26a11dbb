"""Service-layer domain services for the planning board."""
