"""
ArangoDB database connection and utilities.

Provides the client/database singletons, collection and search-view
bootstrapping, and small query helpers. All database operations are logged
for observability.
"""

from typing import Any

from arango import ArangoClient
from arango.database import StandardDatabase
from arango.exceptions import (
    CollectionCreateError,
    DatabaseCreateError,
    IndexCreateError,
    ViewCreateError,
)

from config.config import Settings, get_settings
from config.logging_config import get_logger

logger = get_logger(__name__)

CONDITIONS_COLLECTION = "medical_conditions"
HISTORY_COLLECTION = "query_history"
CONDITIONS_VIEW = "medical_conditions_view"

# English text analyzer shipped with ArangoDB (lowercasing, stemming, stopwords)
TEXT_ANALYZER = "text_en"

# Singleton client instance
_client: ArangoClient | None = None
_db: StandardDatabase | None = None


def get_client(settings: Settings | None = None) -> ArangoClient:
    """
    Get or create the ArangoDB client singleton.

    Returns:
        ArangoClient instance.
    """
    global _client
    if _client is None:
        settings = settings or get_settings()
        _client = ArangoClient(hosts=settings.arango_host)
        logger.info("ArangoDB client initialized", host=settings.arango_host)
    return _client


def get_database(settings: Settings | None = None) -> StandardDatabase:
    """
    Get or create the database connection.

    Creates the database, collections and search view if they don't exist.

    Returns:
        StandardDatabase instance.
    """
    global _db
    if _db is None:
        settings = settings or get_settings()
        client = get_client(settings)

        # Connect to system database to create our database if needed
        sys_db = client.db(
            "_system",
            username=settings.arango_username,
            password=settings.arango_password,
        )

        if not sys_db.has_database(settings.arango_database):
            try:
                sys_db.create_database(settings.arango_database)
                logger.info("Created database", database=settings.arango_database)
            except DatabaseCreateError as e:
                logger.error("Failed to create database", error=str(e))
                raise

        db = client.db(
            settings.arango_database,
            username=settings.arango_username,
            password=settings.arango_password,
        )
        logger.info("Connected to database", database=settings.arango_database)

        _init_collections(db)
        _init_search_view(db)
        _db = db

    return _db


def _init_collections(db: StandardDatabase) -> None:
    """
    Initialize required collections if they don't exist.

    Args:
        db: The database instance.
    """
    for name in (CONDITIONS_COLLECTION, HISTORY_COLLECTION):
        if not db.has_collection(name):
            try:
                db.create_collection(name)
                logger.info("Created collection", collection=name)
            except CollectionCreateError as e:
                logger.warning("Collection creation failed", collection=name, error=str(e))

    # Condition names are unique identifiers
    try:
        db.collection(CONDITIONS_COLLECTION).add_index(
            {"type": "persistent", "fields": ["condition"], "unique": True}
        )
    except IndexCreateError as e:
        logger.warning("Index creation failed", collection=CONDITIONS_COLLECTION, error=str(e))


def _init_search_view(db: StandardDatabase) -> None:
    """
    Create the ArangoSearch view backing relevance queries.

    Indexes condition name, symptom phrases and description with the
    English text analyzer.
    """
    if any(view["name"] == CONDITIONS_VIEW for view in db.views()):
        return

    field_link = {"analyzers": [TEXT_ANALYZER]}
    try:
        db.create_arangosearch_view(
            CONDITIONS_VIEW,
            properties={
                "links": {
                    CONDITIONS_COLLECTION: {
                        "includeAllFields": False,
                        "fields": {
                            "condition": field_link,
                            "symptoms": field_link,
                            "description": field_link,
                        },
                    }
                }
            },
        )
        logger.info("Created search view", view=CONDITIONS_VIEW)
    except ViewCreateError as e:
        logger.warning("Search view creation failed", view=CONDITIONS_VIEW, error=str(e))


def close_connection() -> None:
    """Close the database connection."""
    global _client, _db
    if _client is not None:
        _client.close()
        _client = None
        _db = None
        logger.info("Database connection closed")


def query_documents(
    db: StandardDatabase, aql: str, bind_vars: dict[str, Any] | None = None
) -> list[dict[str, Any]]:
    """
    Execute an AQL query.

    Args:
        db: Database to query.
        aql: AQL query string.
        bind_vars: Query bind variables.

    Returns:
        List of documents.
    """
    cursor = db.aql.execute(aql, bind_vars=bind_vars or {})
    return list(cursor)


def strip_system_fields(document: dict[str, Any]) -> dict[str, Any]:
    """Drop ArangoDB bookkeeping attributes (_key, _id, _rev)."""
    return {k: v for k, v in document.items() if not k.startswith("_")}
