"""Community API adapter."""
