"""Review workflow services."""
