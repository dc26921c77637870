from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Garden Manager"
    DATABASE_URL: str = "sqlite:///./garden.db"

    # Base URL for links in notifications and invoices
    BASE_URL: str = "http://localhost:8000"

    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 72

    # Seeded when the users table is empty
    DEFAULT_ADMIN_EMAIL: str = "admin@gardenmanager.com"
    DEFAULT_ADMIN_PASSWORD: str = "admin"

    LOW_STOCK_ALERT_COOLDOWN_HOURS: int = 24

    # Email (SMTP)
    ENABLE_EMAIL_NOTIFICATIONS: bool = False
    SMTP_SERVER: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    FROM_EMAIL: str = "Garden Management <noreply@gardenmanager.com>"

    # WhatsApp via Twilio
    ENABLE_WHATSAPP_NOTIFICATIONS: bool = False
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_WHATSAPP_NUMBER: str = "whatsapp:+14155238886"

    # File storage
    UPLOAD_DIR: str = "./uploads"
    MAX_IMAGES_PER_UPLOAD: int = 50
    THUMBNAIL_SIZE: int = 300

    # Invoicing
    TAX_RATE: float = 15.0
    CURRENCY: str = "SAR"
    INVOICE_DUE_DAYS: int = 30
    COMPANY_NAME: str = "Garden Management"

    # Translation (MyMemory)
    ENABLE_TRANSLATION: bool = False
    TRANSLATION_API_URL: str = "https://api.mymemory.translated.net/get"
    TRANSLATION_CACHE_SIZE: int = 10000

    model_config = {"env_file": ".env"}


settings = Settings()
