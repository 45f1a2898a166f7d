"""
Column helpers shared by the table definitions
"""
from sqlalchemy import Column, DateTime, String, text
from sqlalchemy.sql import func


def uuid_pk():
    """Text UUID primary key generated by Postgres"""
    return Column(String(36), primary_key=True, server_default=text("gen_random_uuid()::text"))


def created_at_column():
    return Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


def updated_at_column():
    return Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
