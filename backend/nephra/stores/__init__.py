"""Storage backends for the application request tables."""
