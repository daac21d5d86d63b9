"""TimeoutsConfig model."""

from pydantic import BaseModel, Field

from core.constants import CALL_TIMEOUT, DISCOVERY_TIMEOUT, INIT_TIMEOUT


class TimeoutsConfig(BaseModel):
    """Backend request timeouts, in seconds."""

    initialize: float = Field(default=INIT_TIMEOUT, gt=0, description="Initialize handshake")
    discovery: float = Field(default=DISCOVERY_TIMEOUT, gt=0, description="tools/list")
    call: float = Field(default=CALL_TIMEOUT, gt=0, description="tools/call")
