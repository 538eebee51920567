"""HTTP blueprints. Every route lives under /api."""
