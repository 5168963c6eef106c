import uuid

from sqlalchemy import Column, MetaData, String
from sqlalchemy.orm import DeclarativeBase

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def generate_id() -> str:
    """Opaque document-style identifier used as primary key."""
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class AbstractSQLModel(Base):
    """
    Base class for all models. Every row is addressed by an opaque string id,
    mirroring the document ids used by the clients.
    """

    __abstract__ = True

    id = Column(String(64), primary_key=True, default=generate_id)
