"""
MongoDB Setup Script
Tests connection and initializes the scoring collections, indexes and
the default scoring config.
"""
import asyncio
from src.repositories import db_manager, ScoringConfigRepository
from src.models.scoring_config import DEFAULT_SCORING_CONFIG
from src.repositories.connection import SCORING_INDEXES
from src.config import settings

SCORING_COLLECTIONS = tuple(SCORING_INDEXES)


async def setup_mongodb():
    """Initialize the database with collections, indexes and the default config."""
    print("🔄 Connecting to MongoDB...")
    print(f"   Database: {settings.mongodb_database}")
    print()

    try:
        await db_manager.connect()
        print("✅ Connection successful!")
        print()

        db = db_manager.database

        existing_collections = await db.list_collection_names()
        print(f"📦 Existing collections: {existing_collections or 'None'}")
        print()

        print("🔨 Creating indexes...")
        await db_manager.create_indexes()
        print("✅ Indexes created successfully!")
        print()

        print("📊 Verifying indexes:")
        total_indexes = 0
        for name in SCORING_COLLECTIONS:
            indexes = await db[name].index_information()
            total_indexes += len(indexes)
            print(f"   {name}: {len(indexes)} indexes")
            for idx_name in indexes:
                print(f"      - {idx_name}")
        print()

        # Seed the default config only where none is stored yet
        config_repo = ScoringConfigRepository(db)
        existing = await db.settings.find_one({"key": config_repo.key})
        if existing is None:
            await config_repo.save(DEFAULT_SCORING_CONFIG)
            print(f"🌱 Seeded default scoring config under '{config_repo.key}'")
        else:
            await config_repo.load()
            print(f"✅ Stored scoring config '{config_repo.key}' is valid")
        print()

        print("🎉 MongoDB setup complete!")
        print(f"   ✅ Collections: {', '.join(SCORING_COLLECTIONS)}")
        print(f"   ✅ Indexes: {total_indexes} total")
        print()

    except Exception as e:
        print(f"❌ Error: {e}")
        print()
        print("💡 Troubleshooting:")
        print("   1. Verify MONGODB_URI points at a reachable server")
        print("   2. Check that the username and password are correct")
        print("   3. If the config is invalid, fix it via PUT /pipeline/config")
        raise

    finally:
        await db_manager.disconnect()
        print("👋 Disconnected from MongoDB")


if __name__ == "__main__":
    asyncio.run(setup_mongodb())
