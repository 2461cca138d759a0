"""Declarative base for all inventory models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
