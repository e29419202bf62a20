"""Data models for hostdeploy."""
from hostdeploy.models.context import DeploymentContext
from hostdeploy.models.request import DeploymentRequest, parse_request

__all__ = [
    'DeploymentContext',
    'DeploymentRequest',
    'parse_request',
]
