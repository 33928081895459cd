from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from healthdiary.config import get_settings

settings = get_settings()

database_url = settings.database_url
# Railway/Heroku style URLs use the legacy scheme
if database_url.startswith("postgres://"):
    database_url = database_url.replace("postgres://", "postgresql://", 1)

connect_args = {}
if database_url.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(database_url, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
