"""Action items ("todos") and promotion of AI-suggested items."""
