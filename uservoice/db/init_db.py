# File: uservoice/db/init_db.py
# Project: user-voice-backend

import logging
from sqlalchemy.orm import Session

from uservoice.core.config import settings
from uservoice.db.base import Base
from uservoice.db.session import SessionLocal, engine

# every model module has to be imported before create_all or autogenerate sees the metadata
from uservoice.models import activity, attachment, comment, feature_flag, form_config, project, push, request, roadmap, user, vote  # noqa: F401
from uservoice.models.feature_flag import FeatureFlag
from uservoice.models.project import Project

logger = logging.getLogger(__name__)

DEFAULT_FLAGS = {
    "roadmap_kanban": "Kanban roadmap board",
}


def seed_defaults(db: Session):
    if not db.query(Project).filter(Project.slug == settings.default_project_slug).first():
        db.add(Project(name="Default", slug=settings.default_project_slug, description="Default project"))
        logger.info("created default project '%s'", settings.default_project_slug)
    for name, description in DEFAULT_FLAGS.items():
        exists = db.query(FeatureFlag).filter(FeatureFlag.name == name, FeatureFlag.project_id.is_(None)).first()
        if not exists:
            db.add(FeatureFlag(name=name, enabled=True, description=description))
    db.commit()


def init_db(create_tables: bool = True):
    if create_tables:
        Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_defaults(db)
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level.upper())
    init_db()
