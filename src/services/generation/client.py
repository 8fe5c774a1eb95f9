"""
Hosted text model client.

Uses Microsoft Agent Framework with an Azure OpenAI deployment. One call to
``generate_text`` is one remote attempt; retries live in the backoff caller.
"""

import logging
from typing import Optional

from agent_framework import ChatMessage, Role
from agent_framework.azure import AzureOpenAIChatClient
from azure.identity import DefaultAzureCredential

from src.core import get_settings

from .errors import ErrorCategory, GenerationError

logger = logging.getLogger(__name__)

SLIDE_AGENT_INSTRUCTIONS = "You write presentation slides and answer only with JSON."


class TextModelClient:
    """Thin wrapper around the Azure OpenAI chat agent."""
    
    def __init__(self):
        self._settings = get_settings()
        self._chat_client: Optional[AzureOpenAIChatClient] = None
        self._agent = None
    
    @property
    def is_available(self) -> bool:
        return self._settings.has_azure_openai
    
    @property
    def model_name(self) -> str:
        return self._settings.azure_openai_deployment
    
    def _ensure_client(self) -> None:
        """Ensure the chat client and agent are initialized."""
        if self._chat_client is not None:
            return
        
        if not self.is_available:
            raise GenerationError("Azure OpenAI is not configured", ErrorCategory.UNAVAILABLE)
        
        if self._settings.azure_openai_api_key:
            self._chat_client = AzureOpenAIChatClient(
                api_key=self._settings.azure_openai_api_key,
                endpoint=self._settings.azure_openai_endpoint or "",
                deployment_name=self._settings.azure_openai_deployment,
                api_version=self._settings.azure_openai_api_version,
            )
        else:
            self._chat_client = AzureOpenAIChatClient(
                credential=DefaultAzureCredential(),
                endpoint=self._settings.azure_openai_endpoint or "",
                deployment_name=self._settings.azure_openai_deployment,
                api_version=self._settings.azure_openai_api_version,
            )
        
        self._agent = self._chat_client.create_agent(
            name="SlideAgent",
            instructions=SLIDE_AGENT_INSTRUCTIONS,
        )
        logger.info(f"🤖 Slide agent ready on deployment {self._settings.azure_openai_deployment}")
    
    async def generate_text(self, prompt: str) -> str:
        """Send ``prompt`` to the model and return its plain text answer."""
        self._ensure_client()
        
        response = await self._agent.run(
            [ChatMessage(role=Role.USER, text=prompt)]
        )
        return (response.text or "").strip()


# Singleton instance
_text_model_client: Optional[TextModelClient] = None


def get_text_model_client() -> TextModelClient:
    """Get the singleton text model client instance."""
    global _text_model_client
    if _text_model_client is None:
        _text_model_client = TextModelClient()
    return _text_model_client
