import os

# Settings refuse to load without a strong secret; set one before any app import.
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-pytest-only-0123456789")
os.environ.setdefault("STORAGE_URL", "")
