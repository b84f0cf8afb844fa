"""Client-side state for the record form and the paginated listing.

The view keeps the form, per-field errors, the current page and search term
and the page of records last fetched from the backend. It reloads when the
page or search term changes and, once started, every ``refresh_interval``
seconds regardless. Local validation only short-circuits obviously bad
submissions; the backend remains the source of truth.
"""

import asyncio
import logging
import math
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import httpx

from records_client.api import RecordsApiClient
from records_client.errors import ApiConflictError, ApiError, ApiValidationError

logger = logging.getLogger("records_client")

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
GENERIC_NOTICE = "Something went wrong, please try again"
LOAD_FAILED_NOTICE = "Could not load records"


@dataclass
class FormData:
    name: str = ""
    email: str = ""
    message: str = ""

    def trimmed(self) -> Dict[str, str]:
        return {key: value.strip() for key, value in asdict(self).items()}


def validate_form_data(form: FormData) -> Dict[str, str]:
    """Return a field -> message map; empty when the form looks valid."""
    errors = {}
    values = form.trimmed()

    if not values["name"]:
        errors["name"] = "Name is required"
    elif len(values["name"]) < 5:
        errors["name"] = "Name must be at least 5 characters"

    if not values["email"]:
        errors["email"] = "Email is required"
    elif not EMAIL_PATTERN.match(values["email"]):
        errors["email"] = "Email must be valid"

    if not values["message"]:
        errors["message"] = "Message is required"
    elif len(values["message"]) < 3:
        errors["message"] = "Message must be at least 3 characters"

    return errors


class RecordsView:
    def __init__(self, api: RecordsApiClient, page_size: int = 10, refresh_interval: float = 10.0):
        self.api = api
        self.page_size = page_size
        self.refresh_interval = refresh_interval

        self.form = FormData()
        self.errors: Dict[str, str] = {}
        self.page = 1
        self.search = ""
        self.records: List[Dict[str, Any]] = []
        self.total = 0
        self.notice: Optional[str] = None
        self.is_loading = False
        self.is_submitting = False

        self._refresh_task: Optional[asyncio.Task] = None

    # Pagination

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0

    @property
    def page_numbers(self) -> List[int]:
        return list(range(1, self.total_pages + 1))

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    # Loading

    async def load(self) -> None:
        self.is_loading = True
        try:
            body = await self.api.list_records(self.page, self.page_size, self.search or None)
            self.records = body.get("data") or []
            self.total = body.get("total", 0)
            if self.notice == LOAD_FAILED_NOTICE:
                self.notice = None
        except (ApiError, httpx.HTTPError) as e:
            logger.warning(f"Loading records failed: {e}")
            self.records = []
            self.total = 0
            self.notice = LOAD_FAILED_NOTICE
        finally:
            self.is_loading = False

    async def set_page(self, page: int) -> None:
        if page < 1 or page == self.page:
            return
        self.page = page
        await self.load()

    async def set_search(self, term: str) -> None:
        if term == self.search:
            return
        self.search = term
        self.page = 1
        await self.load()

    # Form

    def set_field(self, name: str, value: str) -> None:
        if not hasattr(self.form, name):
            raise AttributeError(f"Unknown form field: {name}")
        setattr(self.form, name, value)
        self.errors.pop(name, None)

    def validate_form(self) -> bool:
        self.errors = validate_form_data(self.form)
        return not self.errors

    async def submit(self) -> Optional[Dict[str, Any]]:
        if not self.validate_form():
            return None

        self.is_submitting = True
        self.notice = None
        try:
            created = await self.api.create_record(**self.form.trimmed())
        except ApiConflictError as e:
            self.errors = {"email": e.field_errors().get("email") or e.message}
            return None
        except ApiValidationError as e:
            self.errors = {
                field: message
                for field, message in e.field_errors().items()
                if field in ("name", "email", "message")
            }
            if not self.errors:
                self.notice = e.message
            return None
        except (ApiError, httpx.HTTPError) as e:
            logger.error(f"Creating record failed: {e}")
            self.notice = GENERIC_NOTICE
            return None
        finally:
            self.is_submitting = False

        logger.info(f"Record created: {created.get('id')}")
        self.form = FormData()
        self.errors = {}
        await self.load()
        return created

    # Periodic refresh

    async def _refresh_forever(self) -> None:
        while True:
            await asyncio.sleep(self.refresh_interval)
            await self.load()

    async def start(self) -> None:
        """Load once, then keep reloading every ``refresh_interval`` seconds."""
        await self.load()
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh_forever())

    async def stop(self) -> None:
        if self._refresh_task is None:
            return
        self._refresh_task.cancel()
        try:
            await self._refresh_task
        except asyncio.CancelledError:
            pass
        self._refresh_task = None
