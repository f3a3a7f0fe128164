"""
Request schemas for image generation and element creation.

Pydantic models validate the inputs of generate_image and ElementStore.create;
validate_request converts pydantic errors into nanobanana ValidationError.
"""

import re
from typing import Any, TypeVar

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from nanobanana.core.resolutions import RESOLUTION_PATTERN
from nanobanana.utils.exceptions import ValidationError

# Handles accepted when creating an element: "@" + word characters or hyphens.
# Prompt parsing (core.prompt.PROMPT_HANDLE_PATTERN) does not accept hyphens.
ELEMENT_HANDLE_PATTERN = re.compile(r"^@[\w-]+$", re.ASCII)

ModelT = TypeVar("ModelT", bound=BaseModel)


class GenerateRequest(BaseModel):
    """Input for one image generation call."""

    prompt: str = Field(..., min_length=1, description="Prompt with handles already resolved")
    resolution: str = Field(..., description="Output size as WIDTHxHEIGHT, e.g. 1376x768")
    input_images: list[str] = Field(
        default_factory=list,
        description="Reference images in order: public URLs, data URLs or raw base64",
    )

    @field_validator("resolution")
    @classmethod
    def _check_resolution(cls, value: str) -> str:
        if not RESOLUTION_PATTERN.fullmatch(value):
            raise ValueError("must look like WIDTHxHEIGHT, e.g. 1376x768")
        return value


class CreateElementRequest(BaseModel):
    """Input for creating an element (handle + image to host)."""

    handle: str = Field(..., min_length=1, description='Handle with "@" prefix, e.g. "@Riley"')
    base64_image: str = Field(..., min_length=1, description="Base64 image or data URL")

    @field_validator("handle")
    @classmethod
    def _check_handle(cls, value: str) -> str:
        if not ELEMENT_HANDLE_PATTERN.fullmatch(value):
            raise ValueError("Handle must contain only letters, numbers, underscores, and hyphens")
        return value


def validate_request(model_cls: type[ModelT], **data: Any) -> ModelT:
    """
    Build a request model, raising ValidationError on the first failing field.

    Raises:
        ValidationError: With field set to the offending field name
    """
    try:
        return model_cls(**data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        loc = first.get("loc") or ("",)
        field_name = str(loc[0])
        msg = first.get("msg", "Invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, ") :]
        raise ValidationError(f"Invalid {field_name}: {msg}", field=field_name) from e
