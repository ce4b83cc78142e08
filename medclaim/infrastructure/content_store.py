"""Content-store upload proxy.

Record contents live off-registry; the registry only keeps the opaque
reference returned here. The client posts JSON to a pinning service
(Pinata-compatible ``pinJSONToIPFS`` by default) with a bearer token and
returns the content hash.

Security Impact:
    - The bearer token is read from a SecretStr at call time and never logged
    - Upstream error bodies are passed through as messages only
"""

import logging
from typing import Any, Optional

import httpx

from medclaim.domain.ports import Result
from medclaim.infrastructure.config_manager import ContentStoreConfig

logger = logging.getLogger(__name__)


class ContentStoreError(Exception):
    """Upload failure with the HTTP status the proxy should answer with."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ContentStoreClient:
    """Async client for the pinning service.

    Parameters:
        config: Upload URL, token and timeout
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
    """

    def __init__(
        self,
        config: ContentStoreConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.config = config
        self._transport = transport

    @staticmethod
    def _failure(message: str, status_code: int) -> Result[str]:
        return Result.failure_result(
            ContentStoreError(message, status_code),
            error_type="ContentStoreError",
            error_details={"status_code": status_code},
        )

    @staticmethod
    def _upstream_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or "Upload failed"
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                return error.get("details") or error.get("reason") or "Upload failed"
            if error:
                return str(error)
        return "Upload failed"

    async def upload(self, content: Any, metadata: Optional[dict] = None) -> Result[str]:
        """Pin ``content`` and return its content reference.

        Returns:
            Result[str]: the content hash on success; on failure
            ``error_details["status_code"]`` holds the status to report
        """
        if not self.config.is_configured:
            logger.error("Content store upload requested but no token is configured")
            return self._failure("Content store token is not configured", 500)

        if content is None or content == "" or content == {}:
            return self._failure("Missing content", 400)

        payload: dict = {"pinataContent": content}
        if metadata:
            payload["pinataMetadata"] = metadata

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.jwt.get_secret_value()}",
        }

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.config.timeout_seconds,
            ) as client:
                response = await client.post(self.config.upload_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Content store request failed: {type(e).__name__}")
            return self._failure(f"Content store unreachable: {type(e).__name__}", 502)

        if response.status_code >= 400:
            message = self._upstream_message(response)
            logger.warning(f"Content store rejected upload with status {response.status_code}")
            return self._failure(message, response.status_code)

        try:
            body = response.json()
        except ValueError:
            body = {}
        content_ref = body.get("IpfsHash") if isinstance(body, dict) else None
        if not content_ref:
            logger.error("Content store response did not include a content hash")
            return self._failure("Upload succeeded but no content hash was returned", 500)

        logger.info(f"Uploaded content to content store: {content_ref}")
        return Result.success_result(content_ref)
