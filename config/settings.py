# config/settings.py
"""
Configuration objects for the shop-floor backend

Loaded by the application factory with app.config.from_object() and then
overridden from the environment.
"""

import os
import secrets
from datetime import timedelta


class BaseConfig:
    """Settings shared by every environment"""

    # Session settings (Onshape tokens live in the signed session cookie)
    SECRET_KEY = os.environ.get('SECRET_KEY') or secrets.token_urlsafe(32)
    ENCRYPTION_KEY = os.environ.get('ENCRYPTION_KEY')
    SESSION_COOKIE_NAME = '__basecamp_session'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = False
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = timedelta(days=30)
    OAUTH_STATE_MAX_AGE = 600  # 10 minutes

    # Onshape OAuth application
    ONSHAPE_CLIENT_ID = os.environ.get('ONSHAPE_CLIENT_ID')
    ONSHAPE_CLIENT_SECRET = os.environ.get('ONSHAPE_CLIENT_SECRET')
    ONSHAPE_REDIRECT_URI = os.environ.get('ONSHAPE_REDIRECT_URI')
    ONSHAPE_SCOPE = os.environ.get('ONSHAPE_SCOPE')
    ONSHAPE_OAUTH_URL = os.environ.get('ONSHAPE_OAUTH_URL', 'https://oauth.onshape.com')
    ONSHAPE_API_URL = os.environ.get('ONSHAPE_API_URL', 'https://cad.onshape.com/api')
    TOKEN_REFRESH_MARGIN = 300  # refresh 5 minutes before expiry

    # Object storage (Supabase Storage REST API)
    SUPABASE_URL = os.environ.get('SUPABASE_URL')
    SUPABASE_SERVICE_KEY = os.environ.get('SUPABASE_SERVICE_KEY')
    EQUIPMENT_IMAGE_BUCKET = 'equipment-images'
    CARD_IMAGE_BUCKET = 'card-images'

    # Outgoing HTTP
    HTTP_TIMEOUT = 30

    # Database
    DATABASE_URL = os.environ.get('DATABASE_URL', 'sqlite:///basecamp.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SLOW_QUERY_THRESHOLD = 1.0
    SLOW_REQUEST_THRESHOLD = 1000

    # Rate limiting
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_HEADERS_ENABLED = True
    AUTH_RATE_LIMIT = '30 per minute'

    # CORS
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get('CORS_ORIGINS', 'http://localhost:3000').split(',')
        if origin.strip()
    ]

    # Security headers
    SECURITY_HEADERS = {
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'DENY',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
        'Permissions-Policy': 'camera=(), microphone=(), geolocation=()'
    }

    # File upload limits
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_TO_SYSLOG = False
    SYSLOG_ADDRESS = '/dev/log'


class DevelopmentConfig(BaseConfig):
    """Local development against a SQLite file"""

    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(BaseConfig):
    """Test suite settings"""

    TESTING = True
    SECRET_KEY = 'test-secret-key'
    ENCRYPTION_KEY = 'test-encryption-key'
    DATABASE_URL = 'sqlite://'
    RATELIMIT_ENABLED = False
    ONSHAPE_CLIENT_ID = 'test-client-id'
    ONSHAPE_CLIENT_SECRET = 'test-client-secret'
    ONSHAPE_REDIRECT_URI = 'http://localhost/auth/onshape/callback'
    ONSHAPE_SCOPE = None
    SUPABASE_URL = 'https://storage.example.test'
    SUPABASE_SERVICE_KEY = 'service-key'
    LOG_LEVEL = 'DEBUG'


class ProductionConfig(BaseConfig):
    """Deployment behind a reverse proxy with a separate frontend origin"""

    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_SAMESITE = 'None'
    LOG_TO_SYSLOG = os.environ.get('LOG_TO_SYSLOG', '0') == '1'

    SECURITY_HEADERS = {
        **BaseConfig.SECURITY_HEADERS,
        'Strict-Transport-Security': 'max-age=31536000; includeSubDomains'
    }


CONFIGS = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}
