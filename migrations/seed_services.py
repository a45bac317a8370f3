"""
Seed the standard CPT service catalog and therapy rooms for a practice

Existing service codes and room numbers are left untouched.

Run with: python migrations/seed_services.py <practice_id>
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app import models, models_billing  # noqa: F401,E402
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.models import Practice, Room  # noqa: E402
from app.models_billing import Service  # noqa: E402

# (code, name, duration minutes, base rate, category, description)
SERVICES = [
    ("90834", "Individual Psychotherapy 45 min", 45, 150.00, "Psychotherapy",
     "Individual psychotherapy, insight oriented, behavior modifying and/or supportive, 45 minutes"),
    ("90837", "Individual Psychotherapy 60 min", 60, 200.00, "Psychotherapy",
     "Individual psychotherapy, insight oriented, behavior modifying and/or supportive, 60 minutes"),
    ("90791", "Psychiatric Diagnostic Evaluation", 90, 300.00, "Assessment",
     "Psychiatric diagnostic evaluation including history, mental status exam and treatment planning"),
    ("90847", "Family Therapy with Patient", 60, 180.00, "Family Therapy",
     "Family psychotherapy with patient present, 60 minutes"),
    ("90853", "Group Therapy", 90, 75.00, "Group Therapy",
     "Group psychotherapy (other than of a multiple-family group)"),
    ("90834-95", "Telehealth Individual 45 min", 45, 150.00, "Telehealth",
     "Individual psychotherapy via telehealth, 45 minutes"),
    ("90837-95", "Telehealth Individual 60 min", 60, 200.00, "Telehealth",
     "Individual psychotherapy via telehealth, 60 minutes"),
    ("90839", "Crisis Psychotherapy 60 min", 60, 175.00, "Crisis",
     "Psychotherapy for crisis, first 60 minutes"),
    ("90901", "Biofeedback Training", 45, 120.00, "Specialized",
     "Biofeedback training by any modality"),
]

# (number, name, capacity, equipment, notes)
ROOMS = [
    ("101", "Individual Therapy Room A", 2, ["comfortable_seating", "white_noise", "natural_light"],
     "Quiet room, suited to individual sessions"),
    ("102", "Individual Therapy Room B", 2, ["comfortable_seating", "white_noise", "plants"],
     "Small room with a calming atmosphere"),
    ("103", "Family Therapy Room", 6, ["family_seating", "play_area", "whiteboard"],
     "Large room for family sessions with children"),
    ("104", "Group Therapy Room", 12, ["circle_seating", "whiteboard", "projector"],
     "Spacious room for group sessions"),
    ("105", "Assessment Room", 3, ["desk", "computer", "testing_materials"],
     "Room for psychological assessments"),
    ("106", "Telehealth Room", 1, ["high_speed_internet", "hd_camera", "privacy_screen"],
     "Dedicated telehealth room"),
    ("107", "Play Therapy Room", 4, ["play_materials", "art_supplies", "child_furniture"],
     "Room for child and adolescent therapy"),
]


def seed(practice_id: int):
    """Create missing services and rooms for a practice"""
    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()
    try:
        practice = db.query(Practice).filter(Practice.id == practice_id).first()
        if not practice:
            print(f"❌ Practice {practice_id} not found")
            sys.exit(1)

        existing_codes = {
            code for (code,) in db.query(Service.service_code).filter(Service.practice_id == practice_id).all()
        }
        services_created = 0
        for code, name, duration, rate, category, description in SERVICES:
            if code in existing_codes:
                print(f"ℹ️  Service {code} already exists")
                continue
            db.add(
                Service(
                    practice_id=practice_id,
                    service_code=code,
                    service_name=name,
                    description=description,
                    duration=duration,
                    base_rate=rate,
                    category=category,
                )
            )
            services_created += 1

        existing_rooms = {
            number for (number,) in db.query(Room.room_number).filter(Room.practice_id == practice_id).all()
        }
        rooms_created = 0
        for number, name, capacity, equipment, notes in ROOMS:
            if number in existing_rooms:
                print(f"ℹ️  Room {number} already exists")
                continue
            db.add(
                Room(
                    practice_id=practice_id,
                    room_number=number,
                    room_name=name,
                    capacity=capacity,
                    equipment=equipment,
                    notes=notes,
                )
            )
            rooms_created += 1

        db.commit()
        print(f"✅ Practice {practice_id}: {services_created} services and {rooms_created} rooms created")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python migrations/seed_services.py <practice_id>")
        sys.exit(1)
    seed(int(sys.argv[1]))
