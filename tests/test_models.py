import pytest
import uuid
from decimal import Decimal
from datetime import datetime, timedelta
from tortoise.exceptions import IntegrityError
from models import (
    User, UserRole, Invitation, Montageteam, AufmassForm, FormImage,
    StatusHistory, Abnahme, AbnahmeImage, Branch, ProductPrice
)
from utils.auth import get_password_hash

class TestUserModel:
    """Test cases for the User model."""

    @pytest.mark.asyncio
    async def test_create_user(self, db):
        """Test creating a user with valid data."""
        user = await User.create(
            id=str(uuid.uuid4()),
            email="test@example.com",
            password_hash=get_password_hash("password123"),
            role=UserRole.USER
        )

        assert user.email == "test@example.com"
        assert user.role == UserRole.USER
        assert user.is_active is True
        assert user.created_at is not None
        assert user.last_login is None

    @pytest.mark.asyncio
    async def test_user_str_representation(self, db):
        user = await User.create(
            id=str(uuid.uuid4()),
            email="test@example.com",
            password_hash=get_password_hash("password123"),
            role=UserRole.USER
        )

        assert str(user) == "test@example.com (user)"

    @pytest.mark.asyncio
    async def test_unique_email_constraint(self, db):
        """Test that email must be unique."""
        email = "duplicate@example.com"
        await User.create(id=str(uuid.uuid4()), email=email, password_hash="x")

        with pytest.raises(IntegrityError):
            await User.create(id=str(uuid.uuid4()), email=email, password_hash="y")

class TestInvitationModel:
    @pytest.mark.asyncio
    async def test_invitation_defaults(self, admin_user):
        invitation = await Invitation.create(
            token="abc123",
            email="new@example.com",
            invited_by=admin_user,
            expires_at=datetime.utcnow() + timedelta(days=7),
        )
        assert invitation.role == UserRole.USER
        assert invitation.used_at is None
        assert await admin_user.invitations.all().count() == 1

class TestAufmassFormModel:
    """Test cases for the form and its related rows."""

    @pytest.mark.asyncio
    async def test_form_defaults(self, db):
        form = await AufmassForm.create(kunde_nachname="Muster")
        assert form.status == "neu"
        assert form.specifications == {}
        assert form.weitere_produkte == []
        assert form.pdf_data is None
        assert form.updated_at is None
        assert str(form) == f"Aufmass #{form.id} Muster"

    @pytest.mark.asyncio
    async def test_json_fields_round_trip(self, db):
        specs = {"breite": 5000, "extras": ["Heizstrahler", "Dimmer"], "überstandActive": True, "überstand": 200}
        form = await AufmassForm.create(
            specifications=specs,
            weitere_produkte=[{"id": "1", "category": "MARKISE", "specifications": {}}],
        )
        loaded = await AufmassForm.get(id=form.id)
        assert loaded.specifications == specs
        assert loaded.weitere_produkte[0]["category"] == "MARKISE"

    @pytest.mark.asyncio
    async def test_images_and_history_relations(self, test_form, test_user):
        await FormImage.create(form=test_form, file_name="a.jpg", file_type="image/jpeg", file_data=b"123")
        await StatusHistory.create(form=test_form, status="neu", changed_by=test_user)

        assert await test_form.bilder.all().count() == 1
        history = await test_form.status_history.all().prefetch_related("changed_by")
        assert history[0].changed_by.id == test_user.id
        assert await test_user.forms.all().count() == 1

    @pytest.mark.asyncio
    async def test_abnahme_is_one_per_form(self, test_form):
        abnahme = await Abnahme.create(form=test_form, hat_probleme=True, maengel_liste=["Kratzer"])
        await AbnahmeImage.create(abnahme=abnahme, file_name="m.jpg", file_type="image/jpeg", file_data=b"x")

        loaded = await AufmassForm.get(id=test_form.id).prefetch_related("abnahme")
        assert loaded.abnahme.id == abnahme.id
        assert loaded.abnahme.maengel_liste == ["Kratzer"]
        assert await abnahme.bilder.all().count() == 1

        with pytest.raises(IntegrityError):
            await Abnahme.create(form=test_form)

class TestSupportingModels:
    @pytest.mark.asyncio
    async def test_montageteam_name_unique(self, db):
        await Montageteam.create(name="SENOL")
        with pytest.raises(IntegrityError):
            await Montageteam.create(name="SENOL")

    @pytest.mark.asyncio
    async def test_branch_defaults(self, db):
        branch = await Branch.create(slug="koblenz", name="Koblenz")
        assert branch.esignature_enabled is False
        assert branch.esignature_sandbox is True
        assert branch.esignature_provider == "openapi"

    @pytest.mark.asyncio
    async def test_price_cell_unique_per_product_and_size(self, db):
        await ProductPrice.create(product_name="Premiumline", breite=5000, tiefe=3000, price=Decimal("4990.00"))
        with pytest.raises(IntegrityError):
            await ProductPrice.create(product_name="Premiumline", breite=5000, tiefe=3000, price=Decimal("1.00"))
