#!/usr/bin/env python3
"""
Fresh schema script.

Drops every permission-engine table and recreates the schema from the models.
All grants, overrides and change requests are lost.

Usage:
    python scripts/migrate_fresh.py
"""

import asyncio
import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from hms_rbac.core.cache import PermissionCache
from hms_rbac.core.database import engine, Base
import hms_rbac.models  # noqa: F401  (registers models on Base)


def migrate_fresh():
    """Drop all tables and recreate them."""
    print("🗄️  Starting fresh schema rebuild...")

    try:
        print("🗑️  Dropping all existing tables...")
        Base.metadata.drop_all(bind=engine)
        print(f"✅ Dropped {len(Base.metadata.tables)} tables")

        print("📈 Creating tables...")
        Base.metadata.create_all(bind=engine)
        print("✅ Tables created")

        # Cached results refer to rows that no longer exist
        deleted = asyncio.run(PermissionCache.flush())
        print(f"🧹 Flushed {deleted} cached permission checks")

        print("\n🎉 Fresh schema rebuild completed successfully!")

    except Exception as e:
        print(f"❌ Error during fresh rebuild: {e}")
        sys.exit(1)


if __name__ == "__main__":
    migrate_fresh()
