"""Configuration management."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _optional_float(value):
    """Parse an optional float setting; empty or missing means None."""
    if value is None or value.strip() == "":
        return None
    return float(value)


class Config:
    """Application configuration."""

    # API
    API_URL = os.getenv("LIBRARY_API_URL", "http://localhost:3001")

    # No timeout unless explicitly configured
    REQUEST_TIMEOUT = _optional_float(os.getenv("REQUEST_TIMEOUT"))

    # Session
    SESSION_USER_ID = os.getenv("SESSION_USER_ID")
    ADMIN_ROLE = os.getenv("ADMIN_ROLE", "Admin")

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
