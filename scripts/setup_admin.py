# scripts/setup_admin.py

import os
import sys
import argparse

from dotenv import load_dotenv
from sqlmodel import Session, select

# Ensure root path for relative imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.database import create_db_and_tables, get_engine
from models.models import Mess, User, UserRole, utc_now

# ✅ Load environment variables
load_dotenv()


def setup_admin_with_mess(
    session: Session,
    user_id: str,
    email: str,
    mess_name: str,
    name: str = "Mess Owner",
) -> User:
    """
    Create the mess if needed and make ``user_id`` (the identity-provider
    subject) its admin. Safe to re-run.
    """
    # -----------------------------
    # 🏠 Mess
    # -----------------------------
    mess = session.exec(select(Mess).where(Mess.name == mess_name)).first()
    if not mess:
        mess = Mess(name=mess_name)
        session.add(mess)
        session.commit()
        session.refresh(mess)
        print(f"✅ Created mess '{mess_name}'")

    # -----------------------------
    # 👑 Admin User
    # -----------------------------
    admin = session.get(User, user_id)
    if not admin:
        admin = User(id=user_id, name=name, email=email)
        print(f"✅ Created admin profile for {email}")
    admin.email = email
    admin.role = UserRole.ADMIN.value
    admin.mess_id = mess.id
    admin.is_active = True
    admin.updated_at = utc_now()
    session.add(admin)
    session.commit()
    session.refresh(admin)

    print(f"🌱 {email} is now admin of '{mess.name}' (mess {mess.id})")
    return admin


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a mess and assign its admin.")
    parser.add_argument("user_id", help="Identity-provider user id (JWT 'sub')")
    parser.add_argument("email", help="Admin email address")
    parser.add_argument("--mess-name", default="Om Sai Bhojnalay", help="Mess to create or reuse")
    parser.add_argument("--name", default="Mess Owner", help="Admin display name")
    args = parser.parse_args()

    create_db_and_tables()
    with Session(get_engine()) as session:
        setup_admin_with_mess(session, args.user_id, args.email, args.mess_name, args.name)
