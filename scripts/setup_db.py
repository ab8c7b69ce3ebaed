#!/usr/bin/env python3
"""
Database setup script to create the hospital database and user.
This script should be run after the PostgreSQL container is running.
"""

import sys
from pathlib import Path

import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from hms_rbac.core.config import settings


def _connect(database: str):
    conn = psycopg2.connect(
        host=settings.database_host,
        port=settings.database_port,
        user='postgres',
        password='postgres',
        database=database
    )
    conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
    return conn


def setup_database():
    """Set up the hospital database and its owner."""
    name = settings.database_name
    owner = settings.database_user

    conn = _connect('postgres')
    cursor = conn.cursor()

    try:
        print(f"Creating {name} database...")
        cursor.execute(f"CREATE DATABASE {name}")
        print(f"✅ Database '{name}' created successfully")

        print(f"Creating {owner}...")
        cursor.execute(f"CREATE USER {owner} WITH PASSWORD %s", (settings.database_password,))
        print(f"✅ User '{owner}' created successfully")

        cursor.execute(f"GRANT ALL PRIVILEGES ON DATABASE {name} TO {owner}")
        print("✅ Privileges granted successfully")

        conn.close()

        conn = _connect(name)
        cursor = conn.cursor()

        cursor.execute(f"GRANT ALL ON SCHEMA public TO {owner}")
        cursor.execute(f"ALTER DEFAULT PRIVILEGES IN SCHEMA public GRANT ALL ON TABLES TO {owner}")
        cursor.execute(f"ALTER DEFAULT PRIVILEGES IN SCHEMA public GRANT ALL ON SEQUENCES TO {owner}")
        print("✅ Schema privileges granted successfully")

        print("\n🎉 Database setup completed successfully!")
        print(f"DATABASE_URL={settings.database_url}")

    except psycopg2.Error as e:
        if "already exists" in str(e):
            print("⚠️  Database or user already exists, skipping creation")
        else:
            print(f"❌ Error setting up database: {e}")
            raise
    finally:
        cursor.close()
        conn.close()

if __name__ == "__main__":
    setup_database()
