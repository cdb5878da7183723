"""Public API: run facade and refinement service client."""
