"""Core services for todosync: parsing, watching, hooks and synchronization."""
