"""
SQLAlchemy handle shared by every model module.

Usage:
    from sitetrack.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
