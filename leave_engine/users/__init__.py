"""Users and the manager directory."""
