# Models package init: importing the package registers every table on Base.metadata
from eventlens.models.activity import UserActivity
from eventlens.models.event import EVENT_STATUSES, Event
from eventlens.models.stall import STALL_STATUSES, Stall

__all__ = ["Event", "Stall", "UserActivity", "EVENT_STATUSES", "STALL_STATUSES"]
