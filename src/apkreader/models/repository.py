import logging
from datetime import datetime

import sqlmodel as sm
from pydantic import computed_field
from sqlmodel import Field, Relationship

from apkreader.models.packages import StoredPackage

logger = logging.getLogger(__name__)


class StoredRepository(sm.SQLModel, table=True):
    """A named set of ingested packages, e.g. one APKINDEX."""

    __tablename__ = "repository"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True, unique=True)
    url: str | None = Field(default=None, index=True)

    packages: list["StoredPackage"] = Relationship(back_populates="repository", cascade_delete=True)

    last_fetched_at: datetime | None = Field(
        default=None,
        sa_column=sm.Column(
            "last_fetched_at",
            sm.DateTime(timezone=True),
            server_default=sm.func.now(),
            onupdate=sm.func.now(),
            nullable=False,
        ),
    )

    @computed_field
    @property
    def format_last_fetched_at(self) -> str | None:
        if self.last_fetched_at is None:
            return None
        try:
            return self.last_fetched_at.strftime("%Y-%m-%d %H:%M:%S")
        except (ValueError, TypeError) as e:
            logger.debug(f"Failed to format date '{self.last_fetched_at}': {e}")
            return None
