#!/usr/bin/env python3
"""
Database initialization script
Creates all tables and optionally seeds the demo slate
"""

import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Load .env file
from dotenv import load_dotenv
load_dotenv()

from sportsbook.models import Base, engine, SessionLocal
from sportsbook.services.game_store import GameStore
from sportsbook.services.seed import seed_games
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
    logger.info("Initializing sportsbook database...")

    if drop_existing:
        logger.warning("Dropping all existing tables!")
        response = input("Are you sure? This will delete all balances and wagers. Type 'yes' to confirm: ")
        if response.lower() != 'yes':
            logger.info("Aborted.")
            return False

        Base.metadata.drop_all(bind=engine)
        logger.info("Existing tables dropped")

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    tables = inspect(engine).get_table_names()
    logger.info("Tables: %s", ", ".join(tables))

    return True


def seed_demo_games():
    """Insert the demo slate into an empty games table"""
    try:
        created = seed_games(GameStore(SessionLocal))
        if created:
            logger.info("Seeded %d games", created)
        else:
            logger.info("Games already present, nothing seeded")
    except Exception as e:
        logger.error("Error seeding games: %s", e)


def check_connection():
    """Test database connection"""
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error("Database connection failed: %s", e)
        return False


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Initialize sportsbook database")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables (DANGER!)")
    parser.add_argument("--seed", action="store_true", help="Seed the demo game slate")
    parser.add_argument("--check", action="store_true", help="Only check connection")

    args = parser.parse_args()

    if args.check:
        sys.exit(0 if check_connection() else 1)

    if not check_connection():
        logger.error("Cannot initialize database - connection failed")
        sys.exit(1)

    if init_database(drop_existing=args.drop) and args.seed:
        seed_demo_games()

    logger.info("Database initialization complete!")
