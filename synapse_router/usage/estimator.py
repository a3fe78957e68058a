"""
Synapse Router - Token Estimation

Estimates the input token count of an Anthropic-style chat payload when the
caller did not send an x-synapse-token-estimate hint. The estimate only
feeds model selection (long-context routing), so a character heuristic is
the default. Setting SYNAPSE_TOKENIZER_ENCODING (e.g. cl100k_base) counts
with a tiktoken encoding instead; that needs the `tokenizer` extra.

Counted:
- message content (strings, text / tool_use / tool_result parts)
- system prompt (string or text blocks)
- tool definitions (name + description, input schema)
"""

import json
import math
import re
from functools import lru_cache
from typing import Any, Dict, List, Optional


@lru_cache(maxsize=8)
def load_encoding(name: str) -> Any:
    """
    Load a tiktoken encoding by name.

    Raises:
        ImportError: if tiktoken is not installed
        ValueError: if the encoding name is unknown
    """
    import tiktoken

    return tiktoken.get_encoding(name)


class TokenEstimator:
    """
    Token counter.

    Without an encoder, uses ~4 characters per token with small adjustments
    for whitespace, digits and punctuation. With one, text is counted by
    `encoder.encode`.
    """

    CHARS_PER_TOKEN = 4.0

    def __init__(self, encoder: Optional[Any] = None):
        self.encoder = encoder

    @classmethod
    def for_encoding(cls, name: str) -> "TokenEstimator":
        """Estimator backed by the named tiktoken encoding."""
        return cls(encoder=load_encoding(name))

    def estimate_text_tokens(self, text: str) -> int:
        if not text:
            return 0
        if self.encoder is not None:
            return len(self.encoder.encode(text, disallowed_special=()))

        base_tokens = len(text) / self.CHARS_PER_TOKEN
        length = max(len(text), 1)

        # Whitespace tends to merge into neighbouring tokens
        whitespace_ratio = len(re.findall(r"\s", text)) / length
        # Digits and punctuation split into more tokens
        number_ratio = len(re.findall(r"\d", text)) / length
        special_ratio = len(re.findall(r"[^\w\s]", text)) / length

        adjusted = (
            base_tokens
            * (1 - whitespace_ratio * 0.1)
            * (1 + number_ratio * 0.2)
            * (1 + special_ratio * 0.1)
        )
        return max(1, int(math.ceil(adjusted)))

    def estimate_json_tokens(self, data: Any) -> int:
        try:
            text = json.dumps(data, separators=(",", ":"))
        except (TypeError, ValueError):
            return 0
        return self.estimate_text_tokens(text)

    def _content_part_tokens(self, part: Dict[str, Any]) -> int:
        part_type = part.get("type")
        if part_type == "text":
            return self.estimate_text_tokens(part.get("text") or "")
        if part_type == "tool_use":
            return self.estimate_json_tokens(part.get("input"))
        if part_type == "tool_result":
            content = part.get("content")
            if isinstance(content, str):
                return self.estimate_text_tokens(content)
            return self.estimate_json_tokens(content)
        return 0

    def estimate_messages_tokens(self, messages: Optional[List[Dict[str, Any]]]) -> int:
        tokens = 0
        for message in messages or []:
            if not isinstance(message, dict):
                continue
            content = message.get("content")
            if isinstance(content, str):
                tokens += self.estimate_text_tokens(content)
            elif isinstance(content, list):
                tokens += sum(
                    self._content_part_tokens(part)
                    for part in content
                    if isinstance(part, dict)
                )
        return tokens

    def estimate_system_tokens(self, system: Any) -> int:
        if isinstance(system, str):
            return self.estimate_text_tokens(system)

        tokens = 0
        if isinstance(system, list):
            for block in system:
                if not isinstance(block, dict) or block.get("type") != "text":
                    continue
                text = block.get("text")
                if isinstance(text, str):
                    tokens += self.estimate_text_tokens(text)
                elif isinstance(text, list):
                    tokens += sum(self.estimate_text_tokens(t or "") for t in text)
        return tokens

    def estimate_tools_tokens(self, tools: Optional[List[Dict[str, Any]]]) -> int:
        tokens = 0
        for tool in tools or []:
            if not isinstance(tool, dict):
                continue
            if tool.get("description"):
                tokens += self.estimate_text_tokens(f"{tool.get('name', '')}{tool['description']}")
            if tool.get("input_schema"):
                tokens += self.estimate_json_tokens(tool["input_schema"])
        return tokens

    def estimate_request_tokens(self, body: Dict[str, Any]) -> int:
        """Estimate input tokens for a /v1/messages request body."""
        return (
            self.estimate_messages_tokens(body.get("messages"))
            + self.estimate_system_tokens(body.get("system"))
            + self.estimate_tools_tokens(body.get("tools"))
        )


def estimate_request_tokens(body: Dict[str, Any]) -> int:
    """Estimate input tokens for a request body."""
    return TokenEstimator().estimate_request_tokens(body)
