"""Path model and frozen domain records."""
