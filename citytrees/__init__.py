"""City trees registry service."""
