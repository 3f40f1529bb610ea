"""Seller account model."""

from pydantic import BaseModel, Field


class Account(BaseModel):
    """Authenticated seller account (``GET account``)."""

    username: str = Field(..., description="Seller username")
    email: str = Field(..., description="Account email address")
    verified: bool = Field(default=False, description="Whether the account is verified")
    singles_live: bool = Field(default=False, description="Whether singles listings are live")
    sealed_live: bool = Field(default=False, description="Whether sealed listings are live")
    payouts_enabled: bool = Field(default=False, description="Whether payouts are enabled")
