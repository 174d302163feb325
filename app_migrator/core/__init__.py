"""Core building blocks shared across the migrator: config, logging, errors, protocols."""
