"""Domain entities the AI jobs read from and write to."""
