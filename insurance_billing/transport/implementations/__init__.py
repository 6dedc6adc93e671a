"""Transport backend implementations."""
