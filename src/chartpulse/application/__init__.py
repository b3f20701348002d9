"""Application layer: aggregation, scoring and scheduling."""
