"""AI tutor gateway over AWS Bedrock (Anthropic messages API)."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from academy.core.config import get_settings

logger = logging.getLogger("tutor.bedrock")

_END = object()


class GatewayError(RuntimeError):
    """The hosted model could not be reached or returned an unusable response."""


def _extract_text(resp_body: Dict[str, Any]) -> str:
    content_list = resp_body.get("content") or []
    text_parts = []
    for block in content_list:
        if isinstance(block, dict) and block.get("type") == "text":
            text_parts.append(block.get("text") or "")
        elif isinstance(block, str):
            text_parts.append(block)
    return "".join(text_parts).strip()


class BedrockGateway:
    def __init__(self, client: Any = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            settings = get_settings()
            self._client = boto3.client(
                service_name="bedrock-runtime",
                region_name=settings.aws_region,
                aws_access_key_id=settings.aws_access_key_id,
                aws_secret_access_key=settings.aws_secret_access_key,
            )
        return self._client

    def build_payload(self, prompt: str, *, system: Optional[str] = None, max_tokens: Optional[int] = None) -> Dict[str, Any]:
        settings = get_settings()
        payload: Dict[str, Any] = {
            "anthropic_version": "bedrock-2023-05-31",
            "max_tokens": max_tokens or settings.bedrock_max_tokens,
            "temperature": settings.bedrock_temperature,
            "top_p": settings.bedrock_top_p,
            "top_k": settings.bedrock_top_k,
            "messages": [
                {
                    "role": "user",
                    "content": [{"type": "text", "text": prompt}],
                }
            ],
        }
        if system:
            payload["system"] = system
        # Sanitize stop sequences: remove empty/whitespace-only entries
        safe_stops = [s for s in settings.bedrock_stop_sequences if isinstance(s, str) and s.strip()]
        if safe_stops:
            payload["stop_sequences"] = safe_stops
        return payload

    def _invoke(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self.client.invoke_model(
            modelId=get_settings().bedrock_model_id,
            body=json.dumps(payload),
            contentType="application/json",
            accept="application/json",
        )
        return json.loads(response["body"].read())

    def invoke_text(self, prompt: str, *, system: Optional[str] = None, max_tokens: Optional[int] = None) -> str:
        """Blocking single-shot completion returning the model's text."""
        payload = self.build_payload(prompt, system=system, max_tokens=max_tokens)
        try:
            try:
                body = self._invoke(payload)
            except ClientError as ce:
                if "ValidationException" in str(ce) and "stop_sequences" in str(ce):
                    # Retry without stop sequences
                    payload.pop("stop_sequences", None)
                    body = self._invoke(payload)
                else:
                    raise
            text = _extract_text(body)
            # early stop on a stop sequence with nothing produced: retry once without them
            if not text and payload.get("stop_sequences") and body.get("stop_reason") == "stop_sequence":
                payload.pop("stop_sequences", None)
                text = _extract_text(self._invoke(payload))
        except (ClientError, BotoCoreError) as exc:
            raise GatewayError(f"Bedrock invoke failed: {exc}") from exc
        if not text:
            raise GatewayError("Empty response content from model")
        return text

    async def complete(self, prompt: str, *, system: Optional[str] = None, max_tokens: Optional[int] = None) -> str:
        return await asyncio.to_thread(self.invoke_text, prompt, system=system, max_tokens=max_tokens)

    async def stream(self, prompt: str, *, system: Optional[str] = None) -> AsyncIterator[str]:
        """Yield text deltas as the model produces them."""
        payload = self.build_payload(prompt, system=system)
        try:
            response = await asyncio.to_thread(
                self.client.invoke_model_with_response_stream,
                modelId=get_settings().bedrock_model_id,
                body=json.dumps(payload),
                contentType="application/json",
                accept="application/json",
            )
            events = iter(response["body"])
            while True:
                event = await asyncio.to_thread(next, events, _END)
                if event is _END:
                    break
                chunk = (event or {}).get("chunk")
                if not chunk:
                    continue
                try:
                    data = json.loads(chunk["bytes"])
                except (ValueError, KeyError, TypeError) as exc:
                    raise GatewayError(f"Undecodable stream chunk: {exc}") from exc
                if not isinstance(data, dict):
                    raise GatewayError("Undecodable stream chunk: expected an object")
                if data.get("type") == "content_block_delta":
                    delta = data.get("delta") or {}
                    if delta.get("type") == "text_delta" and delta.get("text"):
                        yield delta["text"]
        except GatewayError:
            raise
        except (ClientError, BotoCoreError, OSError) as exc:
            logger.warning("bedrock stream failed: %s", exc)
            raise GatewayError(f"Bedrock stream failed: {exc}") from exc


bedrock_gateway = BedrockGateway()

__all__ = ["BedrockGateway", "GatewayError", "bedrock_gateway"]
