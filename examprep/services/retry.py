"""
Bounded retry for optimistic row updates.

Services raise WriteConflict after rolling back a unit of work that lost a version
check or a unique-key race; the whole unit of work is then replayed.
"""

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from examprep.config import settings
from examprep.services.errors import WriteConflict

retry_on_conflict = retry(
    retry=retry_if_exception_type(WriteConflict),
    stop=stop_after_attempt(max(1, settings.max_write_retries)),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=1.0),
    reraise=True,
)
