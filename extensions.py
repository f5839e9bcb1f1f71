"""Shared Flask extension singletons to avoid circular imports."""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager

# Initialize extensions without app; create_app will bind them.
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
