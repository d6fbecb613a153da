"""
Manually set a user's plan when a webhook was missed.
Run: python -m scripts.update_user_plan <user_id> <pro|business|free> [--subscription-id sub_...] [--expires 2026-12-31]
"""
import argparse
import logging
import sys
from datetime import datetime

from app.db.session import SessionLocal
from app.core.plan_limits import FREE_PLAN
from app.services.plan_admin import update_user_plan, downgrade_to_free, verify_user_plan

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Manually update a user's plan")
    parser.add_argument("user_id", help="User ID")
    parser.add_argument("plan", help="pro, business or free")
    parser.add_argument("--subscription-id", help="Stripe subscription ID to link")
    parser.add_argument("--expires", type=datetime.fromisoformat, help="Expiry (ISO date, UTC); default one month")
    parser.add_argument("--verify-only", action="store_true", help="Only print the current plan")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    db = SessionLocal()
    try:
        if not args.verify_only:
            if args.plan.strip().lower() == FREE_PLAN:
                downgrade_to_free(db, args.user_id)
            else:
                update_user_plan(
                    db,
                    args.user_id,
                    args.plan,
                    expires_at=args.expires,
                    subscription_id=args.subscription_id,
                )

        info = verify_user_plan(db, args.user_id)
    except ValueError as e:
        logger.error(str(e))
        return 1
    finally:
        db.close()

    for key, value in info.items():
        print(f"   {key}: {value if value is not None else 'N/A'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
