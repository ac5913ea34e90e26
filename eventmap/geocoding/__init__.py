"""Location text to coordinates: providers, cache and resolver."""
