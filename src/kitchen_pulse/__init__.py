"""Read-side projections for restaurant operations: scores, guardrails, demand drops, awards."""

__version__ = "0.3.0"
