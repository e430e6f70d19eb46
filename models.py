from tortoise import fields
from tortoise.models import Model
from enum import Enum

class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"

class User(Model):
    """
    Represents a user in the system.
    """
    id = fields.UUIDField(pk=True)
    email = fields.CharField(max_length=255, unique=True)
    password_hash = fields.CharField(max_length=255)
    name = fields.CharField(max_length=255, null=True)
    role = fields.CharEnumField(UserRole, default=UserRole.USER)
    created_at = fields.DatetimeField(auto_now_add=True)
    last_login = fields.DatetimeField(null=True)
    is_active = fields.BooleanField(default=True)

    class Meta:
        table = "aufmass_users"

    def __str__(self):
        return f"{self.email} ({getattr(self.role, 'value', self.role)})"

class Invitation(Model):
    """
    A one-time registration link sent to a new user by an admin.
    """
    id = fields.IntField(pk=True)
    token = fields.CharField(max_length=64, unique=True)
    email = fields.CharField(max_length=255)
    role = fields.CharEnumField(UserRole, default=UserRole.USER)
    invited_by = fields.ForeignKeyField("models.User", related_name="invitations", null=True, on_delete=fields.SET_NULL)
    expires_at = fields.DatetimeField()
    used_at = fields.DatetimeField(null=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "aufmass_invitations"

class Montageteam(Model):
    """
    An installation crew that can be assigned to a job.
    """
    id = fields.IntField(pk=True)
    name = fields.CharField(max_length=100, unique=True)
    is_active = fields.BooleanField(default=True)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "aufmass_montageteams"

class AufmassForm(Model):
    """
    The measurement record captured by the wizard, plus its dashboard state
    and the last generated PDF.
    """
    id = fields.IntField(pk=True)
    datum = fields.CharField(max_length=20, null=True)
    aufmasser = fields.CharField(max_length=255, null=True)
    kunde_vorname = fields.CharField(max_length=255, null=True)
    kunde_nachname = fields.CharField(max_length=255, null=True)
    kunde_email = fields.CharField(max_length=255, null=True)
    kundenlokation = fields.CharField(max_length=500, null=True)
    category = fields.CharField(max_length=100, null=True)
    product_type = fields.CharField(max_length=100, null=True)
    model = fields.CharField(max_length=500, null=True)  # comma-joined model names
    specifications = fields.JSONField(default=dict)
    markise_data = fields.JSONField(null=True)
    weitere_produkte = fields.JSONField(default=list)
    bemerkungen = fields.TextField(null=True)
    status = fields.CharField(max_length=50, default="neu")
    status_date = fields.CharField(max_length=20, null=True)
    montage_datum = fields.CharField(max_length=20, null=True)
    montageteam = fields.CharField(max_length=100, null=True)
    pdf_data = fields.BinaryField(null=True)  # store generated PDF bytes
    pdf_generated_at = fields.DatetimeField(null=True)
    created_by = fields.ForeignKeyField("models.User", related_name="forms", null=True, on_delete=fields.SET_NULL)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(null=True)  # Manually managed, compared against pdf_generated_at

    class Meta:
        table = "aufmass_forms"

    def __str__(self):
        return f"Aufmass #{self.id} {self.kunde_nachname or ''}"

class FormImage(Model):
    """
    Photos and PDF attachments uploaded for a form.
    """
    id = fields.IntField(pk=True)
    form = fields.ForeignKeyField("models.AufmassForm", related_name="bilder")
    file_name = fields.CharField(max_length=255)
    file_type = fields.CharField(max_length=100)
    file_data = fields.BinaryField()
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "aufmass_bilder"

class StatusHistory(Model):
    """
    One row per status change of a form.
    """
    id = fields.IntField(pk=True)
    form = fields.ForeignKeyField("models.AufmassForm", related_name="status_history")
    status = fields.CharField(max_length=50)
    changed_by = fields.ForeignKeyField("models.User", related_name="status_changes", null=True, on_delete=fields.SET_NULL)
    changed_at = fields.DatetimeField(auto_now_add=True)
    status_date = fields.CharField(max_length=20, null=True)
    notes = fields.TextField(null=True)

    class Meta:
        table = "aufmass_status_history"

class Abnahme(Model):
    """
    Customer acceptance protocol recorded at job completion.
    """
    id = fields.IntField(pk=True)
    form = fields.OneToOneField("models.AufmassForm", related_name="abnahme")
    ist_fertig = fields.BooleanField(default=False)
    hat_probleme = fields.BooleanField(default=False)
    problem_beschreibung = fields.TextField(null=True)
    maengel_liste = fields.JSONField(default=list)
    baustelle_sauber = fields.CharField(max_length=10, null=True)  # "ja" | "nein"
    monteur_note = fields.IntField(null=True)  # school grade 1-6
    kunde_name = fields.CharField(max_length=255, null=True)
    kunde_unterschrift = fields.TextField(null=True)  # signature as data URL
    abnahme_datum = fields.CharField(max_length=20, null=True)
    bemerkungen = fields.TextField(null=True)
    status_pending = fields.BooleanField(default=False)  # status waits for the required photos
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(null=True)

    class Meta:
        table = "aufmass_abnahme"

class AbnahmeImage(Model):
    """
    Defect photos attached to an acceptance protocol.
    """
    id = fields.IntField(pk=True)
    abnahme = fields.ForeignKeyField("models.Abnahme", related_name="bilder")
    file_name = fields.CharField(max_length=255)
    file_type = fields.CharField(max_length=100)
    file_data = fields.BinaryField()
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "aufmass_abnahme_bilder"

class Branch(Model):
    """
    A tenant branch, identified by its subdomain slug, with its e-signature toggles.
    """
    id = fields.IntField(pk=True)
    slug = fields.CharField(max_length=50, unique=True)
    name = fields.CharField(max_length=255)
    esignature_enabled = fields.BooleanField(default=False)
    esignature_sandbox = fields.BooleanField(default=True)
    esignature_provider = fields.CharField(max_length=50, default="openapi")
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "aufmass_branches"

class ProductPrice(Model):
    """
    One cell of the price grid of a product: width x depth -> price.
    """
    id = fields.IntField(pk=True)
    product_name = fields.CharField(max_length=255)
    breite = fields.IntField()
    tiefe = fields.IntField()
    price = fields.DecimalField(max_digits=10, decimal_places=2)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "aufmass_product_prices"
        unique_together = (("product_name", "breite", "tiefe"),)

class Lead(Model):
    """
    A customer inquiry with priced products, offered as an Angebot PDF before
    any measurement is taken.
    """
    id = fields.IntField(pk=True)
    customer_firstname = fields.CharField(max_length=255)
    customer_lastname = fields.CharField(max_length=255)
    customer_email = fields.CharField(max_length=255)
    customer_phone = fields.CharField(max_length=50, null=True)
    customer_address = fields.TextField(null=True)
    notes = fields.TextField(null=True)
    subtotal = fields.DecimalField(max_digits=10, decimal_places=2, default=0)
    item_discounts = fields.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_discount = fields.DecimalField(max_digits=10, decimal_places=2, default=0)
    total_discount_percent = fields.DecimalField(max_digits=5, decimal_places=2, null=True)
    total_price = fields.DecimalField(max_digits=10, decimal_places=2, default=0)
    status = fields.CharField(max_length=50, default="offen")
    form = fields.ForeignKeyField("models.AufmassForm", related_name="leads", null=True, on_delete=fields.SET_NULL)
    pdf_data = fields.BinaryField(null=True)
    pdf_generated_at = fields.DatetimeField(null=True)
    created_by = fields.ForeignKeyField("models.User", related_name="leads", null=True, on_delete=fields.SET_NULL)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(null=True)

    class Meta:
        table = "aufmass_leads"

    def __str__(self):
        return f"Angebot #{self.id} {self.customer_lastname}"

class LeadItem(Model):
    id = fields.IntField(pk=True)
    lead = fields.ForeignKeyField("models.Lead", related_name="items", on_delete=fields.CASCADE)
    product_name = fields.CharField(max_length=255)
    breite = fields.IntField()
    tiefe = fields.IntField()
    quantity = fields.IntField(default=1)
    unit_price = fields.DecimalField(max_digits=10, decimal_places=2)
    discount = fields.DecimalField(max_digits=10, decimal_places=2, default=0)
    discount_percent = fields.DecimalField(max_digits=5, decimal_places=2, null=True)
    total_price = fields.DecimalField(max_digits=10, decimal_places=2)
    # product details printed below the item on the Angebot
    pi_ober_kante = fields.CharField(max_length=100, null=True)
    pi_unter_kante = fields.CharField(max_length=100, null=True)
    pi_gestell_farbe = fields.CharField(max_length=100, null=True)
    pi_sicherheitglas = fields.CharField(max_length=100, null=True)
    pi_pfostenanzahl = fields.CharField(max_length=100, null=True)

    class Meta:
        table = "aufmass_lead_items"

class LeadExtra(Model):
    id = fields.IntField(pk=True)
    lead = fields.ForeignKeyField("models.Lead", related_name="extras", on_delete=fields.CASCADE)
    description = fields.CharField(max_length=500)
    price = fields.DecimalField(max_digits=10, decimal_places=2)

    class Meta:
        table = "aufmass_lead_extras"
