"""Base model shared by offlinerelay's value types.

Every model is frozen: cached responses are handed to several consumers
and relay messages are broadcast to many contexts, so none of them may be
mutated after construction.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class RelayBaseModel(BaseModel):
    """Frozen pydantic base for requests, responses and messages."""

    model_config = ConfigDict(
        frozen=True,
        validate_default=True,
    )
