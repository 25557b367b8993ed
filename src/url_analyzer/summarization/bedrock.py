"""Summaries and tags from Claude on AWS Bedrock."""

import asyncio
import json
from typing import Any

import boto3

from ..config import DEFAULT_BEDROCK_MODEL
from .base import BaseSummarizer


class BedrockSummarizer(BaseSummarizer):
    """Anthropic messages API on bedrock-runtime, one call per analysis."""

    def __init__(
        self,
        model_id: str = DEFAULT_BEDROCK_MODEL,
        region: str = "us-east-1",
        max_tokens: int = 500,
    ):
        self.model_id = model_id
        self.region = region
        self.max_tokens = max_tokens
        self._client = None

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "bedrock-runtime",
                region_name=self.region,
            )
        return self._client

    @property
    def model_name(self) -> str:
        return self.model_id

    async def complete(self, system: str, prompt: str) -> str:
        # Bedrock uses sync API, wrap in executor for async compatibility
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._invoke_model, system, prompt)

    def _invoke_model(self, system: str, prompt: str) -> str:
        request = json.dumps(
            {
                "anthropic_version": "bedrock-2023-05-31",
                "max_tokens": self.max_tokens,
                "system": system,
                "messages": [{"role": "user", "content": prompt}],
            }
        )

        response = self.client.invoke_model(
            modelId=self.model_id,
            body=request,
            contentType="application/json",
            accept="application/json",
        )

        payload = json.loads(response["body"].read())
        blocks = payload.get("content") or []
        return "".join(b.get("text", "") for b in blocks if b.get("type") == "text").strip()
