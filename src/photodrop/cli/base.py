"""Base class for CLI commands that need a database session."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from photodrop.database import SessionLocal

logger = logging.getLogger(__name__)


class CliCommand:
    """Shared setup/teardown for commands run outside a request."""

    def __init__(self):
        self.db: Optional[Session] = None

    def setup_db(self) -> None:
        self.db = SessionLocal()

    def cleanup_db(self) -> None:
        if self.db is not None:
            self.db.close()
            self.db = None

    def run(self):
        raise NotImplementedError
