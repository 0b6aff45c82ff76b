"""Infrastructure adapters: database and catalog store."""
