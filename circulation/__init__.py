#!/usr/bin/env python

"""
    Circulation, the loan & inventory transaction engine
    of a small library management system.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

__version__ = '0.1.0'
