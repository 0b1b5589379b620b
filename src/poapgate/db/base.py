"""Declarative base for mirror store models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass
