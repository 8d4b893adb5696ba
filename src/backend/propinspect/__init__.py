"""Property inspection scoring and completion service."""
