"""Service layer over the integrations."""
