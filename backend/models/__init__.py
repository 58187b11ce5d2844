"""Graph records and pipeline stage models."""
