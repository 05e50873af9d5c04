"""Hash-field TTL cache backends and the typed credential cache."""
