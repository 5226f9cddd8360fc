# backend/seed.py
import os

from database import SessionLocal, init_db
from models.users import User
from utils.hashing import get_password_hash

# Credentials of the primary administrator (id 1), override them in .env
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@example.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
ADMIN_NAME = os.getenv("ADMIN_NAME", "Administrator")


def run_seed():
    init_db()
    db = SessionLocal()
    try:
        admin = db.get(User, 1)
        if admin:
            print(f"Primary admin already present: {admin.email}")
            return

        db.add(User(
            id=1,
            email=ADMIN_EMAIL.lower(),
            password_hash=get_password_hash(ADMIN_PASSWORD),
            name=ADMIN_NAME,
            role="admin",
        ))
        db.commit()
        print(f"Primary admin created: {ADMIN_EMAIL}")
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
