"""
Role management from the command line:

    python -m glamscan.admin promote someone@example.com
    python -m glamscan.admin demote someone@example.com
"""
import argparse
import logging
import sys

from . import crud
from .database import SessionLocal, create_db_tables

logger = logging.getLogger(__name__)

ROLES = {"promote": "admin", "demote": "user"}


def change_role(email: str, action: str) -> bool:
    db = SessionLocal()
    try:
        db_user = crud.users.set_user_role(db, email=email, role=ROLES[action])
    finally:
        db.close()
    if db_user is None:
        logger.error(f"No user registered with email '{email}'")
        return False
    logger.info(f"User {db_user.id} ({db_user.email}) now has role '{db_user.role}'")
    return True


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="glamscan.admin", description="Manage GlamScan user roles.")
    parser.add_argument("action", choices=sorted(ROLES), help="promote to admin or demote to user")
    parser.add_argument("email", help="email address of the account")
    args = parser.parse_args(argv)

    create_db_tables()
    return 0 if change_role(args.email, args.action) else 1


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(levelname)s - %(message)s')
    sys.exit(main())
