"""
Server connection models.
"""

from typing import Optional

from pydantic import BaseModel, Field


class SqlCredential(BaseModel):
    """
    Login used to connect to an instance.

    A credential without a username means integrated authentication.
    """

    username: Optional[str] = Field(default=None)
    password: Optional[str] = Field(default=None)

    @property
    def integrated(self) -> bool:
        return not self.username


class ServerHandle(BaseModel):
    """An open, verified connection target on a SQL Server instance."""

    address: str = Field(..., description="Instance address as supplied by the caller")
    sql_instance: str = Field(..., description="@@SERVERNAME")
    computer_name: str
    instance_name: str
    version: Optional[str] = None
    credential: SqlCredential = Field(default_factory=SqlCredential, exclude=True)

    class Config:
        frozen = True
