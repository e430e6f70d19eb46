from pathlib import Path
from typing import List, Optional
from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Load environment variables
load_dotenv(dotenv_path=".env", override=False)

class Settings(BaseSettings):
    DATABASE_URL: str = Field(default="sqlite://aufmass.sqlite3", env="DATABASE_URL")
    WKHTMLTOPDF_PATH: Optional[Path] = Field(default=None, env="WKHTMLTOPDF_PATH")
    DATA_DIR: Path = Field(default=Path("./data"))

    # JWT settings
    JWT_SECRET_KEY: str = Field(default="change-me-in-production", env="JWT_SECRET_KEY")
    JWT_ALGORITHM: str = Field(default="HS256")
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=7 * 24 * 60)  # 7 days

    # Uploads
    MAX_UPLOAD_SIZE: int = Field(default=20 * 1024 * 1024)  # 20MB
    MAX_IMAGES_PER_FORM: int = Field(default=10)
    ALLOWED_IMAGE_TYPES: List[str] = Field(default=[".png", ".jpg", ".jpeg", ".gif", ".webp", ".pdf"])

    # Invitations and branches
    INVITATION_VALID_DAYS: int = Field(default=7)
    BRANCH_DOMAIN: str = Field(default="cnsform.com", env="BRANCH_DOMAIN")
    FRONTEND_URL: str = Field(default="http://localhost:5173", env="FRONTEND_URL")

    # Seeded on first start
    DEFAULT_ADMIN_EMAIL: str = Field(default="admin@aylux.de", env="DEFAULT_ADMIN_EMAIL")
    DEFAULT_ADMIN_PASSWORD: str = Field(default="admin123", env="DEFAULT_ADMIN_PASSWORD")
    DEFAULT_ADMIN_NAME: str = Field(default="Administrator", env="DEFAULT_ADMIN_NAME")

    # Optional JSON file replacing the built-in product catalog
    PRODUCT_CONFIG_PATH: Optional[Path] = Field(default=None, env="PRODUCT_CONFIG_PATH")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @field_validator("DATA_DIR", mode="before")
    def ensure_data_dir_exists(cls, v: Path) -> Path:
        Path(v).mkdir(parents=True, exist_ok=True)
        return v

settings = Settings()
