"""Cross-project dashboard statistics."""
