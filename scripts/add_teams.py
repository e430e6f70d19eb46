import argparse
import asyncio
import logging
import os
import sys
from tortoise import Tortoise

# Add parent directory to sys.path to allow importing from project
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db_config import TORTOISE_ORM
from models import Montageteam

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("add_teams")

async def add_teams(names):
    await Tortoise.init(config=TORTOISE_ORM)
    try:
        for name in names:
            name = name.strip()
            if not name:
                continue
            team, created = await Montageteam.get_or_create(name=name)
            if not created and not team.is_active:
                team.is_active = True
                await team.save()
                logger.info(f"Montageteam {name}: reactivated")
            else:
                logger.info(f"Montageteam {name}: {'created' if created else 'exists'}")
    finally:
        await Tortoise.close_connections()

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Add montage teams")
    parser.add_argument("names", nargs="+", help="Team names, e.g. SENOL APO")
    args = parser.parse_args()
    asyncio.run(add_teams(args.names))
