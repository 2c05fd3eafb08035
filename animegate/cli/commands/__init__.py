"""animegate CLI commands."""
