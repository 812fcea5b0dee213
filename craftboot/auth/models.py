"""Identity handed to the launch resolver."""

from pydantic import BaseModel, ConfigDict


class Identity(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    id: str
    access_token: str
