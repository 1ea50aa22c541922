"""Input normalization, aggregation and file loading."""
