#!/usr/bin/env python

"""
    Configurations for Circulation

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import os


# Determine environment
TESTING = os.getenv("TESTING", "false").lower() == "true"

# API server configuration
HOST = os.environ.get('CIRCULATION_HOST', 'localhost')
PORT = int(os.environ.get('CIRCULATION_PORT', 8080))
WORKERS = int(os.environ.get('CIRCULATION_WORKERS', 1))
DEBUG = bool(int(os.environ.get('CIRCULATION_DEBUG', 0)))
LOG_LEVEL = os.environ.get('CIRCULATION_LOG_LEVEL', 'info')

# Signing key for operator session tokens
SEED = os.environ.get('CIRCULATION_SEED', 'circulation-dev-seed')

# Lending rules
DEFAULT_LOAN_DAYS = int(os.environ.get('CIRCULATION_DEFAULT_LOAN_DAYS', 7))
MAX_LOAN_DAYS = int(os.environ.get('CIRCULATION_MAX_LOAN_DAYS', 90))
DEFAULT_RENEW_DAYS = int(os.environ.get('CIRCULATION_DEFAULT_RENEW_DAYS', 7))
AUDIT_DEFAULT_LIMIT = 50

OPTIONS = {
    'host': HOST,
    'port': PORT,
    'log_level': LOG_LEVEL,
    'reload': DEBUG,
    'workers': WORKERS,
}

DB_CONFIG = {
    'user': os.environ.get('DB_USER', 'postgres'),
    'password': os.environ.get('DB_PASSWORD'),
    'host': os.environ.get('DB_HOST'),
    'port': int(os.environ.get('DB_PORT', '5432')),
    'dbname': os.environ.get('DB_NAME', 'circulation'),
}

CIRCULATION_HOME = os.environ.get(
    'CIRCULATION_HOME', os.path.join(os.path.expanduser('~'), '.circulation'))

# Database configuration: explicit URI, then PostgreSQL, then a local SQLite file
DB_PATH = None
if os.environ.get('CIRCULATION_DB_URI'):
    DB_URI = os.environ['CIRCULATION_DB_URI']
elif TESTING:
    DB_URI = "sqlite:///:memory:"
elif DB_CONFIG['host'] and DB_CONFIG['password']:
    DB_URI = 'postgresql+psycopg2://{user}:{password}@{host}:{port}/{dbname}'.format(**DB_CONFIG)
else:
    DB_PATH = os.path.join(CIRCULATION_HOME, 'circulation.db')
    DB_URI = f"sqlite:///{DB_PATH}"

__all__ = [
    'HOST', 'PORT', 'DEBUG', 'LOG_LEVEL', 'OPTIONS', 'SEED', 'DB_URI', 'DB_PATH',
    'DB_CONFIG', 'TESTING', 'DEFAULT_LOAN_DAYS', 'MAX_LOAN_DAYS',
    'DEFAULT_RENEW_DAYS', 'AUDIT_DEFAULT_LIMIT',
]
