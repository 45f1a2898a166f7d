"""
Bank Domain Model
"""
from marketplace.domain.base import DomainModel


class Bank(DomainModel):
    country: str = "NG"
    code: str
    name: str
