"""Variable aggregation and cross-run fact merging."""
