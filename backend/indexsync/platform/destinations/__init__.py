"""Search engine destinations."""
