"""Search index of public collections."""

from typing import Any

from indexsync.platform.destinations._base import Document, IndexSettings
from indexsync.platform.search_index.exceptions import MalformedRowError
from indexsync.platform.search_index.indexes._base import PrimaryStoreProcessor
from indexsync.schemas.search_index import SearchIndexName


class CollectionsProcessor(PrimaryStoreProcessor):
    index_name = SearchIndexName.COLLECTIONS.value
    index_settings = IndexSettings(
        searchable_attributes=["name", "description"],
        filterable_attributes=["nsfwLevel", "type", "userId"],
        sortable_attributes=["itemCount"],
    )

    from_clause = '"Collection" t'
    eligibility = "t.read = 'Public' AND t.availability = 'Public'"
    updated_at_column = 't."updatedAt"'
    select_columns = (
        't.id, t.name, t.description, t.type, t."userId", t."nsfwLevel", '
        '(SELECT COUNT(*) FROM "CollectionItem" ci '
        "WHERE ci.\"collectionId\" = t.id AND ci.status = 'ACCEPTED') AS \"itemCount\""
    )

    def transform_row(self, row: Any) -> Document:
        if not row["name"]:
            raise MalformedRowError(row["id"], "collection has no name")
        return {
            "id": row["id"],
            "name": row["name"],
            "description": row["description"] or "",
            "type": row["type"],
            "userId": row["userId"],
            "nsfwLevel": row["nsfwLevel"],
            "itemCount": row["itemCount"],
        }
