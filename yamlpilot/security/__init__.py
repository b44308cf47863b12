"""HTTP security middleware."""
