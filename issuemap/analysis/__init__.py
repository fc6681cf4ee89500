"""Graph algorithms over dependency records."""
