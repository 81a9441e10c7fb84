import sys
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

USAGE = "usage: python manage_roles.py promote <email-or-username>"


def promote(identifier):
    """Grant the admin role to an existing account."""
    from sitemarket import crud, services
    from sitemarket.db import Base, SessionLocal, engine
    import sitemarket.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        user = crud.find_user(session, identifier)
        if user is None:
            print(f"No user matches {identifier!r}")
            return False
        if user.role == "admin":
            print(f"{user.username} is already an admin")
            return True
        services.promote_to_admin(session, user)
        print(f"{user.username} <{user.email}> is now an admin")
        return True
    finally:
        session.close()


if __name__ == "__main__":
    if len(sys.argv) != 3 or sys.argv[1] != "promote":
        raise SystemExit(USAGE)
    raise SystemExit(0 if promote(sys.argv[2]) else 1)
