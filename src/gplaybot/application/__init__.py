"""Application layer - resolver, cache, session and suggestion services."""
