from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class RemoteEntry(BaseModel):
    """A named object held by the storage backend."""
    model_config = ConfigDict(extra='ignore')

    name: str
    updated_at: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v:
            raise ValueError('Entry name must not be empty')
        return v
