from flask_sqlalchemy import SQLAlchemy

# Bound to an application in create_app(); models use app.models.Base.
db = SQLAlchemy()
