"""Infrastructure layer: provider clients, persistence and observability."""
