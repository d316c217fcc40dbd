""" Db models"""
from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, String, Text, JSON, DateTime, func


Base = declarative_base()


class FunctionModel(Base):
    """Stores one record per function module"""

    __tablename__ = "functions"

    id = Column(String, primary_key=True)
    date = Column(
        DateTime, default=func.now(), nullable=False  # pylint: disable=not-callable
    )
    name = Column(String, nullable=False)
    description = Column(String, nullable=False)
    parameters = Column(JSON)
    code = Column(Text, nullable=False)
