"""Assignment and proposal workflows."""
