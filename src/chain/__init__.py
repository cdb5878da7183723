"""Read-only DataRegistry access."""
