"""
Database reset script: deletes every user and study guide.
"""

import argparse
import os
import sys

# Add the parent directory to the Python path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlalchemy import delete
from sqlalchemy.orm import Session

from db_config import SessionLocal
from models.models import (
    StudyGuide, StudyGuideVersion, User, study_guide_contributor, study_guide_upvote
)

# Children before parents
TABLES_IN_DELETE_ORDER = [
    ("study_guide_version", StudyGuideVersion.__table__),
    ("study_guide_contributor", study_guide_contributor),
    ("study_guide_upvote", study_guide_upvote),
    ("study_guide", StudyGuide.__table__),
    ("user", User.__table__),
]


def reset_database(db: Session, confirm: bool = False) -> bool:
    """Delete all study guides and users."""
    if not confirm:
        response = input(
            "⚠️  This will DELETE ALL USERS AND STUDY GUIDES. Are you sure? (yes/no): "
        )
        if response.lower() != "yes":
            print("❌ Operation cancelled.")
            return False

    print("Resetting database...")
    try:
        for name, table in TABLES_IN_DELETE_ORDER:
            result = db.execute(delete(table))
            print(f"   ✓ {name}: {result.rowcount} rows deleted")
        db.commit()
    except Exception as e:
        db.rollback()
        print(f"\n❌ Error resetting database: {e}")
        return False

    print("\nDatabase reset complete!")
    return True


def main():
    parser = argparse.ArgumentParser(description="Delete all users and study guides")
    parser.add_argument(
        "--yes",
        "-y",
        action="store_true",
        help="Skip the confirmation prompt",
    )
    args = parser.parse_args()

    db = SessionLocal()
    try:
        ok = reset_database(db, confirm=args.yes)
    finally:
        db.close()
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
