"""Domain services: event store, leads, funnel metrics, action tokens, intake."""
