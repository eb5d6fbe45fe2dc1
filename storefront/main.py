# storefront/main.py
import uvicorn
from sqlalchemy.exc import SQLAlchemyError

from storefront.api import create_app
from storefront.data.database import Base, engine
from storefront.utils.logging import setup_logging, get_logger

# all models must be registered before create_all
import storefront.data.models  # noqa: F401

setup_logging()
logger = get_logger(__name__)

logger.info(f"Models registered in Base.metadata: {list(Base.metadata.tables.keys())}")

try:
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")
except SQLAlchemyError as e:
    logger.error(f"Failed to create tables: {e}")
    raise


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
