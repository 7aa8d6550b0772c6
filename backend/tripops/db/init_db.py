"""
Database initialization script.
"""
from tripops.core.config import settings
from tripops.core.logging_config import configure_logging
from tripops.db.session import build_engine, init_db

if __name__ == "__main__":
    configure_logging(settings.LOG_LEVEL)
    print("Initializing document store tables...")
    init_db(build_engine())
    print("Document store initialized successfully!")
