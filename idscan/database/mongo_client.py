"""
MongoDB Client Module for ID card scanning.
Stores accepted scan results.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from bson.errors import InvalidId
from bson.objectid import ObjectId
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from idscan.config import Config
from idscan.modules.field_extractor import ExtractionResult


class MongoDBClient:
    """MongoDB client for accepted ID card scans."""

    def __init__(self, uri: Optional[str] = None, db_name: Optional[str] = None,
                 client: Optional[MongoClient] = None, timeout_ms: Optional[int] = None):
        """
        Initialize MongoDB client.

        Args:
            uri: MongoDB connection URI
            db_name: Database name
            client: Existing client to reuse instead of connecting
            timeout_ms: Server selection timeout in milliseconds

        Raises:
            PyMongoError: If no server answers within the timeout
        """
        self.uri = uri or Config.MONGODB_URI
        self.db_name = db_name or Config.MONGODB_DB_NAME
        self.timeout_ms = Config.MONGODB_TIMEOUT_MS if timeout_ms is None else timeout_ms

        if client is None:
            client = MongoClient(self.uri, serverSelectionTimeoutMS=self.timeout_ms)
            # MongoClient connects lazily; fail here instead of on first query
            try:
                client.admin.command('ping')
            except PyMongoError:
                client.close()
                raise
        self.client = client
        self.db = self.client[self.db_name]

        self.scans: Collection = self.db['scans']

    def save_scan(self, result: ExtractionResult, filename: Optional[str] = None) -> str:
        """
        Save an accepted scan.

        Args:
            result: Validated extraction result
            filename: Source image name, if known

        Returns:
            Document ID as string
        """
        document = {
            'filename': filename or 'unknown',
            'saved_at': datetime.utcnow(),
            'fields': {key: value for key, value in result.to_dict().items() if key != 'confidence'},
            'confidence': result.confidence.to_dict(),
        }

        inserted = self.scans.insert_one(document)
        return str(inserted.inserted_id)

    def get_scan(self, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve a scan by ID.

        Args:
            doc_id: Document ID

        Returns:
            Scan document or None
        """
        try:
            object_id = ObjectId(doc_id)
        except (InvalidId, TypeError):
            return None

        document = self.scans.find_one({'_id': object_id})
        if document:
            document['_id'] = str(document['_id'])
        return document

    def get_recent_scans(self, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Retrieve scans, most recent first.

        Args:
            limit: Maximum number of results

        Returns:
            List of scan documents
        """
        documents = list(
            self.scans.find()
            .sort('saved_at', -1)
            .limit(limit)
        )

        for doc in documents:
            doc['_id'] = str(doc['_id'])

        return documents

    def close(self):
        """Close the MongoDB connection."""
        self.client.close()
