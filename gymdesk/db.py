from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from gymdesk.config import DATABASE_URL

engine_args = {}
if DATABASE_URL.startswith("sqlite"):
    engine_args["connect_args"] = {"check_same_thread": False}

engine = create_engine(DATABASE_URL, **engine_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
