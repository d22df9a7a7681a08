"""Tree walking, emission policy, row-key tracking, and the run pipeline."""
