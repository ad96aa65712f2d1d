"""
Declarative base for the ORM models (SQLAlchemy 2.0 style).
"""
from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    metadata = MetaData(
        naming_convention={
            "ix": "ix_%(table_name)s_%(column_0_name)s",
            "pk": "pk_%(table_name)s",
        }
    )


# Shared by create_all and alembic autogenerate
metadata = Base.metadata
