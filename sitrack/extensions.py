# sitrack/extensions.py
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf import CSRFProtect
from sqlalchemy import MetaData

# Constraint names Alembic can diff across SQLite (dev) and Postgres (data service)
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

db = SQLAlchemy(metadata=MetaData(naming_convention=NAMING_CONVENTION))
migrate = Migrate(compare_type=True)
csrf = CSRFProtect()

# JSON-only app: no login_view, the factory installs a 401 handler instead
login_manager = LoginManager()
login_manager.session_protection = "strong"
login_manager.login_message = "Silakan masuk terlebih dahulu"
