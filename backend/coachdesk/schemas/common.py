from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator

from coachdesk.db.base import as_utc

# Stored naive, always serialised as timezone-aware UTC
UTCDateTime = Annotated[datetime, AfterValidator(as_utc)]
