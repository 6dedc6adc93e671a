"""Document store backend implementations."""
