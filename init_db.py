import os

# One-off script: no background jobs
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from app.extensions import db  # noqa: E402
from app.models import Base  # noqa: E402
from app.seed import seed_service_categories  # noqa: E402
from main import app  # noqa: E402

with app.app_context():
    Base.metadata.create_all(bind=db.engine)
    inserted = seed_service_categories(db.session)

print(f"Tables created, {inserted} service categories inserted")
