"""
Script to put a user on a given plan.
Run: python -m scripts.set_user_plan user@example.com premium [--full-name "Jane Doe"]
"""
import argparse
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core.exceptions import EntitlementError
from app.core.logging_config import setup_logging
from app.core.plan_limits import SELECTABLE_PLANS
from app.db.session import SessionLocal
from app.db.models.user import User
from app.services.entitlement_service import change_plan
import logging

logger = logging.getLogger(__name__)


def set_user_plan(email: str, plan_type: str, full_name: str = None) -> bool:
    """Create the user if needed and switch them to plan_type."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.lower()).first()

        if not user:
            if not full_name:
                logger.error(f"User {email} not found and no --full-name provided. Cannot create user.")
                return False

            logger.info(f"Creating new user: {email}")
            user = User(email=email.lower(), full_name=full_name)
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.info(f"Created user with ID: {user.id}")
        else:
            logger.info(f"Found existing user: {email} (ID: {user.id})")

        subscription = change_plan(db, user.id, plan_type)
        logger.info(f"User {email} is on {subscription.plan_type.value} ({subscription.status.value}), "
                    f"next_billing_date={subscription.next_billing_date}")
        return True

    except EntitlementError as e:
        db.rollback()
        logger.error(f"Error updating user {email}: {e}")
        return False
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Switch a user to a subscription plan.")
    parser.add_argument("email")
    parser.add_argument("plan", choices=[p.value for p in SELECTABLE_PLANS])
    parser.add_argument("--full-name", help="Create the user with this name if they do not exist")
    args = parser.parse_args(argv)

    setup_logging()
    if set_user_plan(args.email, args.plan, args.full_name):
        print(f"\n[SUCCESS] User {args.email} is now on the {args.plan} plan")
        return 0

    print(f"\n[ERROR] Failed to set plan for {args.email}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
