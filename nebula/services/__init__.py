"""Service layer: aggregation, module stores and AI results for Nebula workshops."""
