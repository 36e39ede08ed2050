"""Domain layer for payledger: entities, errors and services."""
