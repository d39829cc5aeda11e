"""Script to run database migrations."""

import sys

from alembic import command
from alembic.config import Config

USAGE = "Usage: python scripts/migrate.py [upgrade [rev] | downgrade <rev> | create <message>]"


def run(action: str, *args: str) -> None:
    """Run one alembic command against alembic.ini in the project root."""
    alembic_cfg = Config("alembic.ini")

    try:
        if action == "upgrade":
            command.upgrade(alembic_cfg, args[0] if args else "head")
        elif action == "downgrade":
            command.downgrade(alembic_cfg, args[0])
        elif action == "create":
            command.revision(alembic_cfg, message=" ".join(args), autogenerate=True)
        print(f"✓ {action} completed successfully!")
    except Exception as e:
        print(f"✗ {action} failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    argv = sys.argv[1:] or ["upgrade"]
    if argv[0] not in {"upgrade", "downgrade", "create"} or (
        argv[0] in {"downgrade", "create"} and len(argv) < 2
    ):
        print(USAGE)
        sys.exit(2)
    run(argv[0], *argv[1:])
