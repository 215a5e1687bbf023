from stackpilot.clients.base import BaseHTTPClient, PermanentHTTPError, RetryableHTTPError
from stackpilot.clients.terraform_cloud import TerraformCloudClient

__all__ = ["BaseHTTPClient", "PermanentHTTPError", "RetryableHTTPError", "TerraformCloudClient"]
