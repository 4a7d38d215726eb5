# extensions.py

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Single source of truth for the db object.
# Bound to an app inside create_app().
db = SQLAlchemy()
migrate = Migrate()
