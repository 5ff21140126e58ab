"""Core helpers: encryption and rate limiting."""
