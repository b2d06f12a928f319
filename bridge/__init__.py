"""Email-to-assistant bridge."""
