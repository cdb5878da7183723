"""Run statistics and persisted outcome logs."""
