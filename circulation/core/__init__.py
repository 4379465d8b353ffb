#!/usr/bin/env python

"""
    Core module for Circulation: storage, models and the
    loan & inventory transaction engine.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

from circulation.core import db as database
from circulation.core import models

session = database.init()

__all__ = ["session", "database", "models"]
