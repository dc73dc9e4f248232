#!/usr/bin/env python3
"""
Database initialization script
Creates the Numbers Book tables and optionally opens a first phase
"""

import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Load .env file
from dotenv import load_dotenv
load_dotenv()

from numbers_book.models import Base, engine, SessionLocal, init_db
from numbers_book.core.book_config import BookConfig
from numbers_book.services.phase_book import PhaseRegistry
from numbers_book.services.store import SqlBookStore
import logging
from sqlalchemy import text, inspect

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def init_database(drop_existing: bool = False):
    """
    Initialize database tables

    Args:
        drop_existing: If True, drops all tables first (DANGER: data loss!)
    """
    logger.info("Initializing Numbers Book database...")

    if drop_existing:
        logger.warning("Dropping all existing tables!")
        response = input("Are you sure? This will delete all data. Type 'yes' to confirm: ")
        if response.lower() != 'yes':
            logger.info("Aborted.")
            return False

        Base.metadata.drop_all(bind=engine)
        logger.info("Existing tables dropped")

    init_db()
    logger.info("Database tables created successfully")

    inspector = inspect(engine)
    logger.info("Tables: %s", ", ".join(inspector.get_table_names()))
    return True


def open_first_phase(name: str):
    """Open an empty phase with the configured global limit"""
    registry = PhaseRegistry(config=BookConfig.from_env(), store=SqlBookStore())
    book = registry.open_phase(name)
    logger.info("Opened phase %s (%s)", book.phase_id, name)
    return book


def check_connection():
    """Test database connection"""
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Initialize Numbers Book database")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables (DANGER!)")
    parser.add_argument("--open-phase", metavar="NAME", help="Open a first phase with this name")
    parser.add_argument("--check", action="store_true", help="Only check connection")

    args = parser.parse_args()

    if args.check:
        sys.exit(0 if check_connection() else 1)

    if not check_connection():
        logger.error("Cannot initialize database - connection failed")
        sys.exit(1)

    if init_database(drop_existing=args.drop) and args.open_phase:
        open_first_phase(args.open_phase)

    logger.info("Database initialization complete")
