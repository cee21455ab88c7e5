"""CRUD singletons."""

from indexsync.crud.crud_search_index_cursor import search_index_cursor

__all__ = ["search_index_cursor"]
