"""Service layer: business logic that takes an explicit database session."""
