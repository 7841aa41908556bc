"""Generation graph nodes."""
