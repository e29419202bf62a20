"""Deployment request model."""
import re

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from hostdeploy.core.errors import InputError

APP_NAME_PATTERN = re.compile(r'^[a-z0-9][a-z0-9_.\-]*$')
VERSION_PATTERN = re.compile(r'^[A-Za-z0-9_][A-Za-z0-9_.\-]{0,127}$')


class DeploymentRequest(BaseModel):
    """Parameters of one deployment run, immutable once parsed."""

    model_config = ConfigDict(extra='forbid', frozen=True, str_strip_whitespace=True)

    app_name: str = Field(..., min_length=1, description="Application name (image repository and container prefix)")
    version: str = Field(..., min_length=1, description="Version (image tag and release directory suffix)")
    environment: str = Field(..., min_length=1, description="Target environment label")

    @field_validator('app_name')
    @classmethod
    def validate_app_name(cls, v):
        """App name must be usable as an image repository and path component."""
        if not APP_NAME_PATTERN.match(v):
            raise ValueError(
                f"App name '{v}' is invalid. "
                "Use lowercase letters, digits, '_', '.', '-', starting with a letter or digit."
            )
        return v

    @field_validator('version')
    @classmethod
    def validate_version(cls, v):
        """Version must be a valid image tag."""
        if not VERSION_PATTERN.match(v):
            raise ValueError(
                f"Version '{v}' is not a valid image tag. "
                "Use letters, digits, '_', '.', '-' (max 128 characters)."
            )
        return v


def parse_request(app_name, version, environment) -> DeploymentRequest:
    """Build a DeploymentRequest, raising InputError on missing or bad values."""
    missing = [
        flag for flag, value in (("--app", app_name), ("--version", version), ("--env", environment))
        if value is None or not str(value).strip()
    ]
    if missing:
        raise InputError(f"Missing required parameter(s): {', '.join(missing)}")

    try:
        return DeploymentRequest(app_name=app_name, version=version, environment=environment)
    except ValidationError as e:
        messages = "; ".join(err['msg'] for err in e.errors())
        raise InputError(messages) from e
