import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # Storage
    books_file: str = os.getenv("LIBRARY_BOOKS_FILE", "BooksFile.txt")
    users_file: str = os.getenv("LIBRARY_USERS_FILE", "UsersFile.txt")

    # Catalog policies
    # allow | reject
    duplicate_policy: str = os.getenv("LIBRARY_DUPLICATE_POLICY", "allow").lower()
    # leave | cascade
    removal_policy: str = os.getenv("LIBRARY_REMOVAL_POLICY", "leave").lower()
    # skip | strict
    malformed_policy: str = os.getenv("LIBRARY_MALFORMED_POLICY", "skip").lower()

    # Application
    app_name: str = os.getenv("APP_NAME", "Library Management System")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = os.getenv("DEBUG", "False").lower() in ("true", "1", "yes")
    log_level: str = os.getenv("LOG_LEVEL", "DEBUG" if debug else "WARNING").upper()


settings = Settings()
