"""Community Map HTTP service."""
