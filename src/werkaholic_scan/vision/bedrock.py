import asyncio
import base64
import json
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import ClassifierError, RateLimitedError
from ..models.scan_result import ScanResult
from ..sources.frames import Frame
from .prompt import LISTING_PROMPT, parse_listing

logger = logging.getLogger(__name__)

_THROTTLE_CODES = {"ThrottlingException", "TooManyRequestsException", "ServiceQuotaExceededException"}


class BedrockClassifier:
    """Turn a still frame into a resale listing using Claude via AWS Bedrock."""

    def __init__(
        self,
        region: str = "us-east-1",
        model_id: str = "us.anthropic.claude-sonnet-4-20250514-v1:0",
        temperature: float = 0.3,
        max_tokens: int = 2048,
    ):
        self.region = region
        self.model_id = model_id
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = boto3.client("bedrock-runtime", region_name=region)

    def _request_body(self, frame: Frame) -> str:
        b64_data = base64.b64encode(frame.data).decode("utf-8")
        content = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": frame.media_type,
                    "data": b64_data,
                },
            },
            {"type": "text", "text": LISTING_PROMPT},
        ]
        return json.dumps(
            {
                "anthropic_version": "bedrock-2023-05-31",
                "max_tokens": self.max_tokens,
                "messages": [{"role": "user", "content": content}],
                "temperature": self.temperature,
            }
        )

    async def classify(self, frame: Frame) -> ScanResult:
        request_body = self._request_body(frame)

        try:
            # Run the synchronous boto3 call in a thread to avoid blocking
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(
                None,
                lambda: self._client.invoke_model(
                    modelId=self.model_id,
                    body=request_body,
                    contentType="application/json",
                    accept="application/json",
                ),
            )
        except ClientError as e:
            error = e.response.get("Error", {})
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            payload = {"code": error.get("Code"), "message": error.get("Message"), "status": status}
            if error.get("Code") in _THROTTLE_CODES or status == 429:
                raise RateLimitedError(f"Bedrock throttled the request: {error.get('Code')}", payload) from e
            raise ClassifierError(f"Bedrock vision API call failed: {e}", payload) from e
        except BotoCoreError as e:
            raise ClassifierError(f"Bedrock vision API call failed: {e}") from e

        response_body = json.loads(response["body"].read())
        stop_reason = response_body.get("stop_reason", "unknown")

        text = ""
        for block in response_body.get("content", []):
            if block.get("type") == "text":
                text = block.get("text", "").strip()
                break

        if not text:
            raise ClassifierError(f"No text in vision response (stop_reason={stop_reason})")

        try:
            payload = parse_listing(text)
        except ValueError as e:
            logger.debug(f"Raw response text: {text[:300]}")
            raise ClassifierError(f"Failed to parse vision response: {e}", text) from e

        return ScanResult.from_payload(payload)
