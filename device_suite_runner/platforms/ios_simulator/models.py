"""Pydantic models for files and responses of the serving toolchain."""

from pydantic import BaseModel, ConfigDict, Field


class PackagerInfo(BaseModel):
    """Settings written by the serving process once it is bound."""

    model_config = ConfigDict(extra="ignore")

    expo_server_port: int = Field(..., alias="expoServerPort")
    packager_port: int | None = Field(default=None, alias="packagerPort")
