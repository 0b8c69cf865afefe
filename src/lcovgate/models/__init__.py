"""Coverage run result models."""
