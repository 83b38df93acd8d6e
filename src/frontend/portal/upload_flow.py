import logging
import re
from dataclasses import dataclass

import requests
from pydantic import ValidationError

from .api_client import PortalClient
from .errors import ActionInProgress, FormValidationError, RequestFailed
from .models import Template
from .query_cache import TEMPLATES, QueryCache

logger = logging.getLogger(__name__)

_PDF_SUFFIX = re.compile(r"\.pdf$", re.IGNORECASE)

DRAG_ON_EVENTS = {"dragenter", "dragover"}
DRAG_OFF_EVENTS = {"dragleave"}


@dataclass
class SelectedFile:
    name: str
    content: bytes

    @property
    def size_mb(self) -> float:
        return len(self.content) / 1024 / 1024


def is_pdf(filename: str) -> bool:
    return _PDF_SUFFIX.search(filename) is not None


def title_from_filename(filename: str) -> str:
    return _PDF_SUFFIX.sub("", filename)


class UploadFlow:
    """Local state behind the template upload card."""

    def __init__(self, client: PortalClient, cache: QueryCache):
        self.client = client
        self.cache = cache
        self.selected_file: SelectedFile | None = None
        self.drag_active = False
        self.title = ""
        self.is_pending = False

    def select_file(self, file: SelectedFile) -> None:
        if not is_pdf(file.name):
            raise FormValidationError("Please upload a PDF file")
        self.selected_file = file
        if not self.title:
            self.title = title_from_filename(file.name)

    def clear_file(self) -> None:
        self.selected_file = None
        self.title = ""

    def handle_drag(self, event_type: str) -> None:
        if event_type in DRAG_ON_EVENTS:
            self.drag_active = True
        elif event_type in DRAG_OFF_EVENTS:
            self.drag_active = False

    def drop(self, files: list[SelectedFile]) -> None:
        self.drag_active = False
        if files:
            self.select_file(files[0])

    @property
    def effective_title(self) -> str:
        if self.title.strip():
            return self.title.strip()
        return title_from_filename(self.selected_file.name) if self.selected_file else ""

    def submit(self) -> Template:
        if self.selected_file is None:
            raise FormValidationError("Please select a PDF file")
        if self.is_pending:
            raise ActionInProgress("An upload is already in progress")

        file = self.selected_file
        self.is_pending = True
        try:
            template = self.client.upload_template(file.name, file.content, self.effective_title)
        except (requests.RequestException, ValidationError) as e:
            logger.exception("Failed to upload template %s", file.name)
            raise RequestFailed("Failed to upload template") from e
        finally:
            self.is_pending = False

        logger.info("Uploaded template %s (%s), processing started", template.title, template.id)
        self.clear_file()
        self.cache.invalidate(TEMPLATES)
        return template
