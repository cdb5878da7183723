"""Per-file refinement pipeline."""
