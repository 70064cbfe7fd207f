"""Core engine: key registry, slug assignment, lookup, and migration."""
