"""Entity manager configuration."""

from pydantic import BaseModel


class ManagerConfig(BaseModel):
    """Configuration for an EntityManager."""

    id_origin: int = 1      # First id handed out on an empty branch
