# certledger/models/config.py

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from certledger.constants import DEFAULT_BUSY_TIMEOUT, DEFAULT_DATABASE
from certledger.services.serial import RetryPolicy


class LedgerConfig(BaseModel):
    """ Runtime settings for opening a ledger """
    model_config = ConfigDict(frozen=True)

    database: str = DEFAULT_DATABASE
    timeout: float = Field(default=DEFAULT_BUSY_TIMEOUT, gt=0)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
