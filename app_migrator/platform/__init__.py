"""Migration engine: transport, cache, and the query/processing pipeline."""
