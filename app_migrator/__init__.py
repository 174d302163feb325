"""App migrator engine: bounded, resumable migration of apps between control planes."""
