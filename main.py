"""Deployment entry point: apply migrations, then serve the API."""

import logging
import os
import subprocess
import sys

import uvicorn

from codeduel.config import settings

logger = logging.getLogger("codeduel.deploy")


def run_migrations() -> bool:
    logger.info("Running database migrations")
    try:
        subprocess.run(["alembic", "upgrade", "head"], check=True)
    except (subprocess.CalledProcessError, FileNotFoundError) as e:
        logger.error(f"Migration failed: {e}")
        return False
    logger.info("Migrations complete")
    return True


def main() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not run_migrations():
        sys.exit(1)

    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("codeduel.main:app", host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
