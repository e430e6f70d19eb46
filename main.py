from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from tortoise.contrib.fastapi import register_tortoise
import logging
from db_config import TORTOISE_ORM

# Configure logging to show debug logs
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler()
    ]
)

# Set log levels for specific loggers
logging.getLogger("pdf_renderer").setLevel(logging.DEBUG)
logging.getLogger("pdfgen").setLevel(logging.DEBUG)
logging.getLogger("forms").setLevel(logging.DEBUG)
logging.getLogger("leads").setLevel(logging.DEBUG)
logging.getLogger("form_engine").setLevel(logging.INFO)
logging.getLogger("uvicorn").setLevel(logging.INFO)  # Keep uvicorn at INFO level to reduce noise
logging.getLogger("file_upload").setLevel(logging.DEBUG)
logging.getLogger("upload").setLevel(logging.DEBUG)
logging.getLogger("passlib").setLevel(logging.WARNING)
logging.getLogger("multipart").setLevel(logging.WARNING)
logging.getLogger("PIL").setLevel(logging.WARNING)

# Disable Tortoise and database-related debug logs
logging.getLogger("tortoise").setLevel(logging.WARNING)
logging.getLogger("tortoise.db_client").setLevel(logging.WARNING)
logging.getLogger("db").setLevel(logging.WARNING)
logging.getLogger("asyncpg").setLevel(logging.WARNING)
logging.getLogger("tortoise.backends").setLevel(logging.WARNING)

app = FastAPI(
    title="AYLUX Aufmaß API",
    description="API for Aufmaß measurement forms, their status workflow and PDF data sheets",
    version="1.0.0"
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
from routers import (
    auth, users, forms, images, abnahme, pdfgen, montageteams, branches, catalog, pricing, leads
)
app.include_router(auth.router, prefix="/api/auth", tags=["authentication"])
app.include_router(users.router, prefix="/api", tags=["users"])
app.include_router(forms.router, prefix="/api", tags=["forms"])
app.include_router(images.router, prefix="/api", tags=["images"])
app.include_router(abnahme.router, prefix="/api", tags=["abnahme"])
app.include_router(pdfgen.router, prefix="/api", tags=["pdf"])
app.include_router(montageteams.router, prefix="/api", tags=["montageteams"])
app.include_router(branches.router, prefix="/api", tags=["branches"])
app.include_router(catalog.router, prefix="/api", tags=["catalog"])
app.include_router(pricing.router, prefix="/api", tags=["pricing"])
app.include_router(leads.router, prefix="/api", tags=["leads"])

# Register Tortoise ORM using the config from db_config.py
register_tortoise(
    app,
    config=TORTOISE_ORM,
    generate_schemas=False,  # Don't generate schemas - let Aerich handle migrations
    add_exception_handlers=True,
)

@app.get("/ping")
async def ping():
    return {"status": "ok"}

@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "aufmass-api"}
