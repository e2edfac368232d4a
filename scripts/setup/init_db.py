# scripts/setup/init_db.py
"""
Initialize database — creates all tables.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from app.database import create_tables, engine
from app.config import settings
from sqlalchemy import inspect, text


def main():
    print("🗄️  ResQWave DB Initialization")
    print("=" * 40)
    print(f"📡 Database: {engine.url.render_as_string(hide_password=True)}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except Exception as e:
        print(f"❌ Cannot connect to database: {e}")
        print("\nMake sure PostgreSQL is running and DATABASE_URL in .env is correct:")
        print("  sudo systemctl start postgresql")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()
    print("✅ All tables created")

    tables = sorted(inspect(engine).get_table_names())
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    print("\n🎉 Database ready! Seed demo terminals, then start the backend:")
    print("   python scripts/setup/seed_terminals.py")
    print(f"   uvicorn app.main:app --host {settings.BACKEND_IP} --port {settings.BACKEND_PORT} --reload")


if __name__ == "__main__":
    main()
