"""
Request validation - shape and format checks that run before any I/O.

Every check collects all violations into one `ValidationError` keyed by field
name, so a client can render per-field feedback.
"""
import re
import uuid
from typing import Dict, List, Optional

from application.dto import ItemRequestDTO, PageQueryDTO
from core.config import settings
from core.logging_config import get_logger
from domain.common.exceptions import ValidationError


logger = get_logger(__name__)

NAME_MAX_LENGTH = 100
_NAME_PATTERN = re.compile(r"[A-Za-z0-9 _.\-]+")


def _name_errors(name: Optional[str]) -> List[str]:
    if name is None or not name.strip():
        return ["Name is required and cannot be empty."]
    if len(name) > NAME_MAX_LENGTH:
        return [f"Name cannot exceed {NAME_MAX_LENGTH} characters."]
    if not _NAME_PATTERN.fullmatch(name):
        return [
            "Name contains invalid characters. Only letters, numbers, spaces, "
            "hyphens, underscores, and dots are allowed."
        ]
    return []


def _require(request) -> None:
    if request is None:
        raise ValidationError.for_field("request", "Request cannot be null.")


def _raise_if_any(errors: Dict[str, List[str]], kind: str) -> None:
    if errors:
        logger.warning("validation_failed", request_kind=kind, validation_errors=errors)
        raise ValidationError(errors)


class ItemValidator:
    """Validates item requests.

    `max_page_size` is the validation ceiling; the service clamps to its own,
    lower, ceiling afterwards.
    """

    def __init__(self, max_page_size: Optional[int] = None) -> None:
        if max_page_size is None:
            max_page_size = settings.pagination.validation_max_page_size
        self.max_page_size = max_page_size

    def validate_create(self, request: ItemRequestDTO) -> None:
        _require(request)
        errors: Dict[str, List[str]] = {}

        name_errors = _name_errors(request.name)
        if name_errors:
            errors["Name"] = name_errors

        if request.id:
            errors["Id"] = ["ID should not be provided for create requests."]

        _raise_if_any(errors, "create")
        logger.debug("create_request_valid", name=request.name)

    def validate_update(self, request: ItemRequestDTO) -> None:
        _require(request)
        errors: Dict[str, List[str]] = {}

        if request.id is None or not request.id.strip():
            errors["Id"] = ["ID is required for update requests."]
        else:
            try:
                uuid.UUID(request.id.strip())
            except ValueError:
                errors["Id"] = ["ID must be a valid GUID format."]

        name_errors = _name_errors(request.name)
        if name_errors:
            errors["Name"] = name_errors

        _raise_if_any(errors, "update")
        logger.debug("update_request_valid", id=request.id, name=request.name)

    def validate_pagination(self, request: PageQueryDTO) -> None:
        _require(request)
        errors: Dict[str, List[str]] = {}

        if request.start_page < 1:
            errors["StartPage"] = ["StartPage must be greater than 0."]

        if request.page_size < 1:
            errors["PageSize"] = ["PageSize must be greater than 0."]
        elif request.page_size > self.max_page_size:
            errors["PageSize"] = [f"PageSize cannot exceed {self.max_page_size}."]

        _raise_if_any(errors, "pagination")
        logger.debug(
            "pagination_request_valid",
            start_page=request.start_page,
            page_size=request.page_size,
        )

    def validate_and_parse_id(self, value: Optional[str], field_name: str = "Id") -> uuid.UUID:
        if value is None or not value.strip():
            raise ValidationError.for_field(field_name, f"{field_name} is required and cannot be empty.")

        try:
            parsed = uuid.UUID(value.strip())
        except ValueError:
            logger.warning("invalid_guid", field=field_name, value=value)
            raise ValidationError.for_field(field_name, f"{field_name} must be a valid GUID format.")

        if parsed.int == 0:
            raise ValidationError.for_field(field_name, f"{field_name} cannot be an empty GUID.")
        return parsed
