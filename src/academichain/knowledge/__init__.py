"""Knowledge-base page templates."""
