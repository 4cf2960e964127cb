from .mongo_client import MongoDBClient

__all__ = ['MongoDBClient']
