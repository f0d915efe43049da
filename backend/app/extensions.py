# Overview: Flask extension instances for database and migrations.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Single metadata for engine tables; storage backend is chosen by DATABASE_URL.
db = SQLAlchemy()
migrate = Migrate()
