"""
PoolOps: Pool Maintenance Operations
Shared SQLAlchemy handle.

Every model module imports ``db`` from here; ``create_app`` binds it to the
Flask application.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
