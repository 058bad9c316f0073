"""
Database table creation script for Identity Reconciliation API
This script creates all database tables and tests the database connection.
Run this script after setting up your database to initialize the schema.
"""

import asyncio
import logging
from typing import Optional

from database import DatabaseManager, db_manager
from services.contact_store import ContactStore

logger = logging.getLogger(__name__)


async def create_tables(manager: Optional[DatabaseManager] = None) -> bool:
    """
    Create all database tables defined in the models
    Returns False when the database cannot be reached or the schema fails
    """
    manager = manager or db_manager
    logger.info("Starting database table creation...")

    if not await manager.test_connection():
        logger.error("Database connection failed - cannot create tables")
        return False

    try:
        await manager.create_tables()

        async with manager.get_session() as session:
            count = await ContactStore(session).count()
            logger.info(f"Contacts table accessible - current count: {count}")
    except Exception as e:
        logger.error(f"Failed to create database tables: {e}")
        return False

    return True


def main() -> bool:
    logging.basicConfig(level=logging.INFO)
    logger.info("Identity Reconciliation API - Database Setup")

    success = asyncio.run(create_tables())

    if success:
        logger.info("Database setup completed successfully!")
        logger.info("You can now start the API server with: python main.py")
    else:
        logger.error("Database setup failed! Check your database configuration and try again")

    return success


if __name__ == "__main__":
    raise SystemExit(0 if main() else 1)
