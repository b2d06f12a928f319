"""Lambda entry points for the mail bridge."""
