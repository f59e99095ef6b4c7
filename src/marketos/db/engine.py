"""SQLModel engine singleton and table creation."""
from sqlmodel import SQLModel, create_engine

from marketos.config import get_settings

_engine = None


def get_engine():
    """Return the module-level engine, creating it on first call."""
    global _engine
    if _engine is None:
        settings = get_settings()
        connect_args = {}
        if settings.database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False  # scheduler tasks and API share it
        _engine = create_engine(settings.database_url, connect_args=connect_args)
        create_tables(_engine)
    return _engine


def create_tables(engine) -> None:
    """Create all tables (idempotent)."""
    # Import all models so metadata is populated before create_all
    from marketos.models.integration import MarketplaceIntegration  # noqa
    from marketos.models.product import MarketplaceProduct, MarketplaceSale  # noqa
    from marketos.models.sync import SyncLog  # noqa
    SQLModel.metadata.create_all(engine)
