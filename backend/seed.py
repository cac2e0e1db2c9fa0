import logging
import random
import sys
import uuid
from datetime import datetime, timedelta

# Add current directory to sys.path to resolve 'app' modules
sys.path.append(".")

from app.core.db import SessionLocal
from app.models.activity import AttemptEvent
from app.models.profile import StudentProfile
from app.services.catalog_service import catalog_service
from app.services.mastery_service import mastery_service

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_USER_ID = uuid.UUID("00000000-0000-4000-8000-000000000001")
DEMO_COURSE_ID = "1"
DEMO_ATTEMPTS = 60


def seed_db():
    rng = random.Random(42)
    db = SessionLocal()
    try:
        logger.info("Seeding database...")

        # 1. Demo profile
        profile = db.get(StudentProfile, DEMO_USER_ID)
        if not profile:
            profile = StudentProfile(
                user_id=DEMO_USER_ID,
                courses=[DEMO_COURSE_ID],
                goal_score=20,
                hours_per_week=6,
                school_grade=4,
            )
            db.add(profile)
            db.commit()
            logger.info(f"Created StudentProfile {DEMO_USER_ID}")

        # 2. Attempt history, one week back
        existing = (
            db.query(AttemptEvent)
            .filter(AttemptEvent.user_id == DEMO_USER_ID, AttemptEvent.course_id == DEMO_COURSE_ID)
            .count()
        )
        if existing:
            logger.info(f"Demo user already has {existing} attempts, skipping")
        else:
            catalog = catalog_service.get(DEMO_COURSE_ID)
            start = datetime.utcnow() - timedelta(days=7)
            for i in range(DEMO_ATTEMPTS):
                topic = rng.choice(catalog.topics[:8])
                skills = [skill.number for skill in topic.skills[:2]]
                task = rng.choice(sorted(catalog.fipi_task_topics))
                event = AttemptEvent(
                    user_id=DEMO_USER_ID,
                    course_id=DEMO_COURSE_ID,
                    question_id=f"demo-{i}",
                    is_correct=rng.random() < 0.6,
                    duration_answer=rng.uniform(30, 240),
                    problem_number_type=task,
                    skills=skills,
                    topics=[topic.code],
                    created_at=start + timedelta(hours=i * 2),
                )
                db.add(event)
            db.commit()
            mastery_service.recalculate_from_attempts(db, DEMO_USER_ID, DEMO_COURSE_ID, catalog)
            logger.info(f"Created {DEMO_ATTEMPTS} attempts and rebuilt mastery")

        logger.info("Seeding complete!")
        logger.info(f"Demo User ID: {DEMO_USER_ID}")
        logger.info(f"Demo Course ID: {DEMO_COURSE_ID}")

    except Exception as e:
        logger.error(f"Seeding failed: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_db()
