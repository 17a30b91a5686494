# Overview: Flask extension instances for database, migrations and deferred event dispatch.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .services.deferred import DeferredDispatcher

db = SQLAlchemy()
migrate = Migrate()
dispatcher = DeferredDispatcher()
