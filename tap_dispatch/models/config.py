"""Configuration for a dispatch run."""

from pydantic import Field

from tap_dispatch.faults import FaultKind
from tap_dispatch.models.base import Model


class DispatchConfig(Model):
    """Configuration threaded through the dispatcher."""

    trace: bool = Field(
        default=False, description="Write stack traces for failures and faults"
    )
    exit_code: bool = Field(
        default=False, description="Complete with status 1 on net test failure"
    )
    fatal: FaultKind = Field(
        default=FaultKind(0),
        description="Fault kinds re-raised immediately instead of recorded",
    )
