#!/usr/bin/env python
"""
    Item Schema for Circulation,
    including the definition of the Item model and its attributes.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

from pydantic import BaseModel
from typing import Optional

class Item(BaseModel):

    code: str
    title: str
    author: str
    category: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None
    available_quantity: int
    active: bool
    is_loanable: bool

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "code": "L001",
                "title": "El Quijote",
                "author": "Miguel de Cervantes",
                "category": "Novela",
                "publisher": "Acme",
                "year": 2005,
                "available_quantity": 4,
                "active": True,
                "is_loanable": True
            }
        }
