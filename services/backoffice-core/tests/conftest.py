"""
Test environment
"""
import os

# Keep the application engine off PostgreSQL during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("WHATSAPP_ACCESS_TOKEN", "")
os.environ.setdefault("WHATSAPP_PHONE_NUMBER_ID", "")
