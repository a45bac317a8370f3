"""
Seed the default notification triggers and templates

Practices registered through the API get these on signup; this script
backfills practices created before a trigger was added to the defaults.

Run with: python migrations/seed_notification_triggers.py [practice_id]
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app import models, models_notification  # noqa: F401,E402
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.models import Practice  # noqa: E402
from app.services.notification_service import ensure_default_triggers  # noqa: E402


def seed(practice_id=None):
    """Create missing default triggers for one practice, or for all of them"""
    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()
    total = 0
    try:
        query = db.query(Practice)
        if practice_id is not None:
            query = query.filter(Practice.id == practice_id)
        practices = query.all()
        if not practices:
            print("⚠️ No practices found")
            return 0

        for practice in practices:
            created = ensure_default_triggers(db, practice.id)
            total += created
            print(f"✅ Practice {practice.id} ({practice.name}): {created} triggers created")
    finally:
        db.close()

    print(f"\n✅ Notification triggers seeded. Created: {total}")
    return total


if __name__ == "__main__":
    seed(int(sys.argv[1]) if len(sys.argv) > 1 else None)
