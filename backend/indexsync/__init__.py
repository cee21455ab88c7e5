"""Incremental search index synchronization service."""
