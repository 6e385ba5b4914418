# Overview: Flask extension instances shared by models, services and the CLI.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# One metadata for the whole ledger store; Alembic reads it through Migrate.
db = SQLAlchemy()
migrate = Migrate()
