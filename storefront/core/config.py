from pydantic import BaseModel
import os

class Settings(BaseModel):
    # Document store
    MONGODB_URI: str         = os.getenv('MONGODB_URI', 'mongodb://localhost:27017')
    MONGODB_DB: str          = os.getenv('MONGODB_DB', 'storefront')
    MONGODB_TIMEOUT_MS: int  = int(os.getenv('MONGODB_TIMEOUT_MS', '5000'))
    MONGODB_TRANSACTIONS: bool = os.getenv('MONGODB_TRANSACTIONS', 'false').lower() == 'true'

    # Operator account
    ADMIN_USERNAME: str      = os.getenv('ADMIN_USERNAME', 'admin')
    ADMIN_PASSWORD: str      = os.getenv('ADMIN_PASSWORD', 'admin')
    ADMIN_PASSWORD_HASH: str = os.getenv('ADMIN_PASSWORD_HASH', '')

    # Sessions
    SESSION_TTL_SECONDS: int            = int(os.getenv('SESSION_TTL_SECONDS', '86400'))
    SESSION_SWEEP_INTERVAL_SECONDS: int = int(os.getenv('SESSION_SWEEP_INTERVAL_SECONDS', '3600'))
    AUTH_COOKIE_NAME: str               = os.getenv('AUTH_COOKIE_NAME', 'auth_token')

    # Catalog
    DEFAULT_PRODUCT_IMAGE: str = os.getenv('DEFAULT_PRODUCT_IMAGE', '/images/default.png')

    # Logging
    ENVIRONMENT: str = os.getenv('ENVIRONMENT', 'development')
    LOG_LEVEL: str   = os.getenv('LOG_LEVEL', '')

settings = Settings()
