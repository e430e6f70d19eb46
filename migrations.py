import asyncio
import typer
from aerich import Command
from tortoise import Tortoise
from db_config import TORTOISE_ORM

app = typer.Typer()
command = Command(tortoise_config=TORTOISE_ORM)

DEFAULT_TEAMS = ["Team 1", "Team 2", "Team 3"]

@app.command()
def init():
    """Initialize Aerich for migrations"""
    print("Initializing Aerich...")
    asyncio.run(command.init())

@app.command()
def init_db(safe: bool = True):
    """Initialize the database with initial migration"""
    print("Initializing database...")
    asyncio.run(command.init_db(safe))

@app.command()
def migrate(name: str = "update"):
    """Create a new migration"""
    print(f"Creating migration '{name}'...")
    asyncio.run(command.migrate(name))

@app.command()
def upgrade():
    """Apply all pending migrations"""
    print("Applying pending migrations...")
    asyncio.run(command.upgrade(run_in_transaction=True))

@app.command()
def downgrade(version: str = None):
    """Downgrade to a specific version"""
    if version:
        print(f"Downgrading to version {version}...")
        asyncio.run(command.downgrade(version, delete=False))
    else:
        print("Downgrading to previous version...")
        asyncio.run(command.downgrade(-1, delete=False))

@app.command()
def history():
    """Show migration history"""
    print("Migration history:")
    for version in asyncio.run(command.history()):
        print(f"  {version}")

@app.command()
def heads():
    """Show current migration heads"""
    print("Current migration heads:")
    for version in asyncio.run(command.heads()):
        print(f"  {version}")

async def _seed(teams: bool) -> None:
    from models import Branch, Montageteam
    from services.branch import KNOWN_BRANCHES
    from utils.auth import ensure_default_admin

    await Tortoise.init(config=TORTOISE_ORM)
    try:
        admin = await ensure_default_admin()
        print(f"Default admin created: {admin.email}" if admin else "Admin already exists")

        for slug, name in KNOWN_BRANCHES.items():
            _, created = await Branch.get_or_create(slug=slug, defaults={"name": name})
            print(f"Branch {slug}: {'created' if created else 'exists'}")

        if teams:
            for name in DEFAULT_TEAMS:
                _, created = await Montageteam.get_or_create(name=name)
                print(f"Montageteam {name}: {'created' if created else 'exists'}")
    finally:
        await Tortoise.close_connections()

@app.command()
def seed(teams: bool = True):
    """Create the default admin, the known branches and the default montage teams"""
    print("Seeding database...")
    asyncio.run(_seed(teams))

if __name__ == "__main__":
    app()
