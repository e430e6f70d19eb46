import argparse
import asyncio
import logging
import os
import sys
from tortoise import Tortoise

# Add parent directory to sys.path to allow importing from project
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db_config import TORTOISE_ORM
from models import Branch
from services.branch import KNOWN_BRANCHES

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("setup_branches")

async def setup_branches(enable_esignature: bool, production: bool):
    """
    Create a settings row for every known branch. Existing rows only get
    their e-signature flags updated when asked to.
    """
    await Tortoise.init(config=TORTOISE_ORM)
    try:
        for slug, name in KNOWN_BRANCHES.items():
            branch, created = await Branch.get_or_create(slug=slug, defaults={"name": name})
            if enable_esignature:
                branch.esignature_enabled = True
                branch.esignature_sandbox = not production
                await branch.save()
            logger.info(
                f"Branch {slug}: {'created' if created else 'exists'} "
                f"(esignature={branch.esignature_enabled}, sandbox={branch.esignature_sandbox})"
            )
    finally:
        await Tortoise.close_connections()

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create the branch settings rows")
    parser.add_argument("--enable-esignature", action="store_true", help="Turn on e-signatures for all branches")
    parser.add_argument("--production", action="store_true", help="Use the production signing API instead of the sandbox")
    args = parser.parse_args()
    asyncio.run(setup_branches(args.enable_esignature, args.production))
