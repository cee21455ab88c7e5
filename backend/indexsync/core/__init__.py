"""Core services: configuration, logging, shared clients."""
