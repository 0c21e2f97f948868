"""Seed database with the roles and a default admin account.

Safe to run repeatedly: existing roles and users are left untouched.
Run after `python migrate.py upgrade`.
"""
from sqlalchemy.orm import Session

from app.auth import get_password_hash
from app.config import settings
from app.database import SessionLocal
from app.migration_phases import seed_roles
from app.models import ROLE_NAMES, Role, User


def ensure_admin(db: Session, *, email: str, password: str) -> bool:
    """Create the admin user unless the email is taken. Returns True when created."""
    if db.query(User.id).filter(User.email == email).first():
        return False
    admin_role = db.query(Role).filter(Role.name == "admin").one()
    db.add(
        User(
            email=email,
            password=get_password_hash(password),
            username="admin",
            full_name="Admin",
            role=admin_role,
            status="active",
        )
    )
    return True


def seed():
    """Seed roles and the default admin."""
    db = SessionLocal()

    try:
        seed_roles(db.connection(), ROLE_NAMES)
        created = ensure_admin(
            db,
            email=settings.SEED_ADMIN_EMAIL,
            password=settings.SEED_ADMIN_PASSWORD,
        )
        db.commit()
        if created:
            print(f"Seeded admin user: {settings.SEED_ADMIN_EMAIL}")
        else:
            print(f"Admin user {settings.SEED_ADMIN_EMAIL} already exists")
    except Exception as e:
        print(f"Error seeding database: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
