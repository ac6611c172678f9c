"""
Wayquest Backend - MongoDB Database Manager
Async MongoDB connection using Motor and Beanie ODM
"""

from typing import List, Optional, Type

from beanie import Document, init_beanie
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.core.config import settings
from app.core.exceptions import DatabaseError


class DatabaseManager:
    """MongoDB connection manager with async support"""

    _client: Optional[AsyncIOMotorClient] = None
    _database: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect(cls, document_models: Optional[List[Type[Document]]] = None) -> None:
        """
        Connect to MongoDB and initialize Beanie ODM

        Args:
            document_models: List of Beanie Document models to register
        """
        if not settings.MONGODB_URI:
            raise DatabaseError("MONGODB_URI is not configured")

        try:
            logger.info(f"Connecting to MongoDB: {settings.MONGODB_DATABASE}")

            cls._client = AsyncIOMotorClient(
                settings.MONGODB_URI,
                maxPoolSize=settings.MONGODB_MAX_POOL_SIZE,
                minPoolSize=settings.MONGODB_MIN_POOL_SIZE,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
            )
            cls._database = cls._client[settings.MONGODB_DATABASE]

            await cls._client.admin.command("ping")
            logger.info("MongoDB connection established successfully")

            if document_models:
                await init_beanie(database=cls._database, document_models=document_models)
                logger.info(f"Beanie initialized with {len(document_models)} document models")

        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise DatabaseError(f"Failed to connect to MongoDB: {e}") from e

    @classmethod
    async def disconnect(cls) -> None:
        """Close MongoDB connection"""
        if cls._client:
            cls._client.close()
            cls._client = None
            cls._database = None
            logger.info("MongoDB connection closed")

    @classmethod
    async def ping(cls) -> bool:
        """Check if database is reachable"""
        if cls._client is None:
            return False
        try:
            await cls._client.admin.command("ping")
            return True
        except Exception as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return False


async def init_database(document_models: List[Type[Document]]) -> None:
    """Initialize database with document models"""
    await DatabaseManager.connect(document_models)


async def close_database() -> None:
    """Close database connection"""
    await DatabaseManager.disconnect()
