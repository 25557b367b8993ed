"""Email notifications for finished analyses."""
