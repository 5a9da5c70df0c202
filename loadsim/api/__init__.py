"""Report rendering for simulation runs."""
