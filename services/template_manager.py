import logging
from pathlib import Path
from jinja2 import Environment, FileSystemLoader, select_autoescape
from datetime import datetime
from decimal import Decimal
from templates.structure import PDF_STRUCTURE

logger = logging.getLogger("template_manager")

class TemplateManager:
    """
    Manages the Jinja2 templates used for PDF documents and customer mails.
    """

    def __init__(self):
        # Base templates directory
        self.base_dir = Path(__file__).parent.parent / "templates"
        self.pdf_templates_dir = self.base_dir / "pdf_templates"

        # Initialize Jinja2 environment
        self.env = Environment(
            loader=FileSystemLoader(str(self.base_dir)),
            autoescape=select_autoescape(["html", "xml"])
        )

        # Add custom filters
        self.env.filters['safe_str'] = self.safe_str
        self.env.filters['default_if_none'] = self.default_if_none
        self.env.filters['format_value'] = self.format_value
        self.env.filters['format_price'] = self.format_price

        # Register the now function for template context
        self.env.globals['now'] = datetime.now

    @staticmethod
    def safe_str(value):
        """Safely convert any value to string, including datetime objects"""
        if isinstance(value, datetime):
            return value.strftime('%d.%m.%Y')
        elif value is None:
            return ""
        else:
            return str(value)

    @staticmethod
    def default_if_none(value, default=""):
        """Return default value if input is None"""
        return default if value is None else value

    @staticmethod
    def format_value(value):
        """Render a captured specification value the way it is printed on the data sheet"""
        if value is None or value == "":
            return "-"
        if isinstance(value, bool):
            return "Ja" if value else "Nein"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, list):
            return ", ".join(str(v) for v in value) if value else "-"
        if isinstance(value, dict):
            return ", ".join(f"{k}: {v}" for k, v in value.items())
        return str(value)

    @staticmethod
    def format_price(value):
        """German currency notation: 1.234,50 EUR"""
        amount = Decimal(str(value or 0)).quantize(Decimal("0.01"))
        text = f"{amount:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
        return f"{text} EUR"

    def get_template_path(self, document_type):
        """
        Get the template path for a document type, falling back to the
        Aufmaß data sheet.
        """
        template_path = self.pdf_templates_dir / document_type / "base.html"

        if template_path.exists():
            logger.info(f"Using template for {document_type}")
            return f"pdf_templates/{document_type}/base.html"
        else:
            logger.info(f"No template found for {document_type}, using default")
            return "pdf_templates/aufmass/base.html"

    def render_template(self, document_type, template_data):
        """
        Render the PDF template for a document type with prepared data.
        """
        try:
            template = self.env.get_template(self.get_template_path(document_type))
            return template.render(structure=PDF_STRUCTURE, **template_data)
        except Exception as e:
            logger.error(f"Error rendering template for {document_type}: {e}")
            raise

    def render_text(self, template_name, context):
        """Render a plain text template such as a customer mail."""
        template = self.env.get_template(template_name)
        return template.render(**context).strip()
