"""HTTP planning API."""
