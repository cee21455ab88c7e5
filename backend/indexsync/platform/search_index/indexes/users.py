"""Search index of users."""

from typing import Any

from indexsync.platform.destinations._base import Document, IndexSettings
from indexsync.platform.search_index.exceptions import MalformedRowError
from indexsync.platform.search_index.indexes._base import PrimaryStoreProcessor, to_unix_ms
from indexsync.schemas.search_index import SearchIndexName


class UsersProcessor(PrimaryStoreProcessor):
    """Active users with their all-time metrics."""

    index_name = SearchIndexName.USERS.value
    index_settings = IndexSettings(
        searchable_attributes=["username"],
        filterable_attributes=["id", "username"],
        sortable_attributes=["createdAt", "metrics.followerCount", "metrics.uploadCount"],
        ranking_rules=["sort", "attribute", "words", "proximity", "exactness", "typo"],
    )

    from_clause = (
        '"User" t LEFT JOIN "UserMetric" um '
        "ON um.\"userId\" = t.id AND um.timeframe = 'AllTime'"
    )
    eligibility = 't.id != -1 AND t."deletedAt" IS NULL'
    # New users; profile edits and deletions arrive as queued intents
    updated_at_column = 't."createdAt"'
    select_columns = (
        't.id, t.username, t.image, t."createdAt", '
        'COALESCE(um."followerCount", 0) AS "followerCount", '
        'COALESCE(um."uploadCount", 0) AS "uploadCount"'
    )

    def transform_row(self, row: Any) -> Document:
        """Map a user row to its document."""
        if not row["username"]:
            raise MalformedRowError(row["id"], "user has no username")
        return {
            "id": row["id"],
            "username": row["username"],
            "image": row["image"],
            "createdAt": to_unix_ms(row["createdAt"]),
            "metrics": {
                "followerCount": row["followerCount"],
                "uploadCount": row["uploadCount"],
            },
        }
