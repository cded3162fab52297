"""
Reply Generator Interface - Abstract base for text-generation providers.

This module defines the interface the assistant member uses to answer comments.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional


class ReplyGenerator(ABC):
    """
    Abstract Interface for text-generation providers (OpenAI, Ollama, etc.).
    """

    @abstractmethod
    def generate_reply(
        self,
        prompt: str,
        conversation_context: Optional[List[Dict[str, str]]] = None,
        group_context: Optional[List[dict]] = None,
    ) -> str:
        """
        Generate a short reply to a comment that mentions the assistant.

        Args:
            prompt: Comment text addressed to the assistant
            conversation_context: Previous comments as {'name', 'comment'} dicts
            group_context: Optional image content blocks for the post

        Returns:
            Reply text. Implementations return a fallback message rather than raise.
        """
        pass
