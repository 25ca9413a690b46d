#!/usr/bin/env python3
"""
Database initialization script
Creates all tables and optionally seeds demo profiles and posts
"""

import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Load .env file
from dotenv import load_dotenv
load_dotenv()

from wagerloop.models import Base, engine, SessionLocal
from wagerloop.services import social_feed
import logging
from sqlalchemy import text, inspect
from sqlalchemy.exc import SQLAlchemyError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_USERS = [
    ("user1", "sharpshooter"),
    ("user2", "parlaypete"),
]


def init_database(drop_existing: bool = False):
    """
    Initialize database tables

    Args:
        drop_existing: If True, drops all tables first (DANGER: data loss!)
    """
    logger.info("Initializing WagerLoop database...")

    if drop_existing:
        logger.warning("Dropping all existing tables!")
        response = input("Are you sure? This will delete all data. Type 'yes' to confirm: ")
        if response.lower() != 'yes':
            logger.info("Aborted.")
            return False

        Base.metadata.drop_all(bind=engine)
        logger.info("Existing tables dropped")

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    inspector = inspect(engine)
    tables = inspector.get_table_names()
    logger.info("Tables: %s", ", ".join(tables))

    return True


def seed_test_data():
    """Add demo profiles, a post and a follow for development"""
    logger.info("Seeding test data...")

    db = SessionLocal()

    try:
        for user_id, username in DEMO_USERS:
            social_feed.get_or_create_profile(db, user_id, username)
        db.commit()

        social_feed.create_post(db, "user1", "Welcome to WagerLoop! Share your picks.")
        social_feed.follow(db, "user2", "user1")

        logger.info("Test data seeded")

    except (SQLAlchemyError, social_feed.SocialFeedError) as e:
        logger.error("Error seeding data: %s", e)
        db.rollback()

    finally:
        db.close()


def check_connection():
    """Test database connection"""
    try:
        db = SessionLocal()
        db.execute(text("SELECT 1"))
        db.close()
        logger.info("Database connection successful")
        return True
    except SQLAlchemyError as e:
        logger.error("Database connection failed: %s", e)
        return False


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Initialize WagerLoop database")
    parser.add_argument("--drop", action="store_true", help="Drop existing tables (DANGER!)")
    parser.add_argument("--seed", action="store_true", help="Seed demo data")
    parser.add_argument("--check", action="store_true", help="Only check connection")

    args = parser.parse_args()

    if args.check:
        check_connection()
    else:
        if check_connection():
            if init_database(drop_existing=args.drop) and args.seed:
                seed_test_data()

            logger.info("Database initialization complete!")
        else:
            logger.error("Cannot initialize database - connection failed")
            sys.exit(1)
