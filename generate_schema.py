import asyncio
from tortoise import Tortoise
from config import settings
from utils.auth import ensure_default_admin

async def generate_schema():
    # Initialize Tortoise
    await Tortoise.init(
        db_url=settings.DATABASE_URL,
        modules={'models': ['models']}
    )

    # Generate schema
    print(f"Generating schema on {settings.DATABASE_URL}...")
    await Tortoise.generate_schemas(safe=True)
    print("Schema generation completed!")

    admin = await ensure_default_admin()
    if admin:
        print(f"Default admin created: {admin.email}")

    # Close connections
    await Tortoise.close_connections()

if __name__ == "__main__":
    # Run the async function
    asyncio.run(generate_schema())
