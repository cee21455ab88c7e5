"""Platform building blocks: concurrency, store clients, the sync engine."""
