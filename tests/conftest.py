import pytest
import pytest_asyncio
import copy
import uuid
from httpx import AsyncClient, ASGITransport
from tortoise import Tortoise
from unittest.mock import patch

from main import app
from models import User, UserRole, AufmassForm
from utils.auth import get_password_hash, create_access_token

# Test database configuration
TEST_DB_URL = "sqlite://:memory:"

# A fully filled Überdachung form that passes every wizard step
COMPLETE_FORM = {
    "datum": "2024-05-14",
    "aufmasser": "Max Mustermann",
    "kundeVorname": "Erika",
    "kundeNachname": "Musterfrau",
    "kundeEmail": "erika@example.com",
    "kundenlokation": "Hauptstraße 1, 56068 Koblenz",
    "productSelection": {
        "category": "ÜBERDACHUNG",
        "productType": "Glasdach",
        "model": ["Premiumline"],
    },
    "specifications": {
        "breite": 5000,
        "tiefe": 3000,
        "anzahlStützen": 3,
        "höheStützen": 2500,
        "gestellfarbe": "RAL 7016 ANTHRAZIT",
        "befestigungsart": "Wand",
        "wandbeschaffenheit": "Beton",
        "überstandActive": False,
        "fundament": "Aylux",
        "bauformType": "BUNDIG",
        "dachrinne": True,
        "extras": ["Keine"],
        "markise": False,
        "eindeckung": "8MM KLAR",
        "montageteam": "SENOL",
    },
    "weitereProdukte": [],
    "bemerkungen": "Zugang über Garten",
    "bilder": 2,
}

@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database for each test."""
    await Tortoise.init(
        db_url=TEST_DB_URL,
        modules={"models": ["models"]},
    )
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()

@pytest_asyncio.fixture
async def test_client(db):
    """Create a test client for the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

@pytest_asyncio.fixture
async def test_user(db):
    """Create a test user."""
    user = await User.create(
        id=str(uuid.uuid4()),
        email="testuser@example.com",
        name="Test User",
        password_hash=get_password_hash("testpassword123"),
        role=UserRole.USER,
        is_active=True
    )
    return user

@pytest_asyncio.fixture
async def admin_user(db):
    """Create an admin test user."""
    user = await User.create(
        id=str(uuid.uuid4()),
        email="admin@example.com",
        name="Admin",
        password_hash=get_password_hash("adminpassword123"),
        role=UserRole.ADMIN,
        is_active=True
    )
    return user

@pytest_asyncio.fixture
async def auth_headers(test_user):
    """Create authorization headers for a test user."""
    access_token = create_access_token(data={"sub": str(test_user.id)})
    return {"Authorization": f"Bearer {access_token}"}

@pytest_asyncio.fixture
async def admin_headers(admin_user):
    """Create authorization headers for an admin user."""
    access_token = create_access_token(data={"sub": str(admin_user.id)})
    return {"Authorization": f"Bearer {access_token}"}

@pytest.fixture
def complete_form():
    """A deep copy of the complete form payload."""
    return copy.deepcopy(COMPLETE_FORM)

@pytest_asyncio.fixture
async def test_form(test_user):
    """A saved form in status 'neu'."""
    form = await AufmassForm.create(
        datum="2024-05-14",
        aufmasser="Max Mustermann",
        kunde_vorname="Erika",
        kunde_nachname="Musterfrau",
        kunde_email="erika@example.com",
        kundenlokation="Hauptstraße 1, 56068 Koblenz",
        category="ÜBERDACHUNG",
        product_type="Glasdach",
        model="Premiumline",
        specifications=dict(COMPLETE_FORM["specifications"]),
        created_by=test_user,
    )
    return form

@pytest.fixture
def mock_pdfkit():
    """Replace wkhtmltopdf with a canned PDF."""
    with patch("services.pdf_renderer.pdfkit.from_string", return_value=b"%PDF-1.4 fake pdf") as mock_render:
        yield mock_render
