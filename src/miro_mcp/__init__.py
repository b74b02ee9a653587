"""miro-mcp: async Miro REST API client core."""
