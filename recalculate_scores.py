"""
Recalculate stored assessment scores
Usage: python recalculate_scores.py [assignment_id]
"""
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from app import models, models_assessment  # noqa: F401,E402
from app.database import SessionLocal  # noqa: E402
from app.services.assessment_scoring import recalculate_all  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger(__name__)


def main(assignment_id=None):
    db = SessionLocal()
    try:
        count = recalculate_all(db, assignment_id)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Score recalculation failed: {e}")
        raise
    finally:
        db.close()
    logger.info(f"✅ Recalculated scores for {count} assignments")
    return count


if __name__ == "__main__":
    main(int(sys.argv[1]) if len(sys.argv) > 1 else None)
