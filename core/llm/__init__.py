"""LLM Module - assistant reply services and interfaces."""
from core.llm.interfaces import ReplyGenerator
from core.llm.openai_service import OpenAIReplyService

__all__ = ['ReplyGenerator', 'OpenAIReplyService']
