"""AI providers, prompt builders and structured result schemas."""
