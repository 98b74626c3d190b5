"""Integrations translating agent runtime hook payloads into gate payloads."""

from .claude_code import payload_from_hook

__all__ = ["payload_from_hook"]
