"""Content model and normalization."""
