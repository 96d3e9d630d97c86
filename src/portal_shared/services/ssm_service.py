"""Stripe secrets from AWS SSM Parameter Store.

Consulted only when a secret is missing from the environment. Values are
decrypted SecureStrings and are kept for the life of the process.
"""

from typing import Any

import boto3
from botocore.exceptions import ClientError

from ..utils.logging import get_logger

logger = get_logger(__name__)

_ERROR_HINTS = {
    "ParameterNotFound": "parameter does not exist",
    "AccessDeniedException": "IAM role lacks ssm:GetParameter",
}


class SSMServiceError(Exception):
    """A parameter could not be read."""


class SSMService:
    """Cached reader for SecureString parameters.

    Usage:
        ssm = SSMService()
        secret = ssm.get_parameter("/portal/dev/stripe/webhook_secret")
    """

    def __init__(self, region_name: str | None = None) -> None:
        self._region_name = region_name
        self._client: Any = None
        self._values: dict[str, str] = {}

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("ssm", region_name=self._region_name)
        return self._client

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Return the decrypted value stored at ``name``.

        Raises:
            SSMServiceError: Missing parameter, denied access or any other
                SSM failure.
        """
        if use_cache and name in self._values:
            return self._values[name]

        logger.info("Reading SSM parameter %s", name)
        try:
            response = self.client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            hint = _ERROR_HINTS.get(code, str(e))
            raise SSMServiceError(f"Cannot read SSM parameter {name} ({code}): {hint}") from e

        value: str = response["Parameter"]["Value"]
        self._values[name] = value
        return value

    def clear_cache(self) -> None:
        self._values.clear()
