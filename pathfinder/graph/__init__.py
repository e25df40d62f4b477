"""Graph schema and storage adapters."""
