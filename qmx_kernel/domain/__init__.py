"""Pure domain layer: entities, value types, builders, queries, statistics."""
