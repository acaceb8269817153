"""Gemini chat transport implementation."""

import os
from typing import List, Optional
import google.generativeai as genai
from google.generativeai.types import BlockedPromptException
from google.api_core import exceptions as google_exceptions
import structlog

from .base import ChatTransport, ExchangeContext, FragmentHandler, build_system_instruction
from ...config.settings import DEFAULT_MODEL
from ...core.messages import Message, MessageType, Role
from ...errors import ChatError
from ...state.settings_store import ChatSettings
from ...utils.cancellation import CancellationToken, ExchangeCancelled


logger = structlog.get_logger()


class GeminiTransport(ChatTransport):
    """
    Streams replies from the Gemini API.
    """

    def __init__(self, max_output_tokens: int = 2048, default_model: str = DEFAULT_MODEL):
        self.max_output_tokens = max_output_tokens
        self.default_model = default_model
        self.is_initialized = False
        self.is_streaming = False

    def initialize(self) -> None:
        """Configure the Gemini API client."""
        logger.info("Initializing Gemini transport", model=self.default_model)

        api_key = os.getenv("GOOGLE_API_KEY")
        if not api_key:
            raise ValueError("GOOGLE_API_KEY environment variable not set")

        genai.configure(api_key=api_key)
        self.is_initialized = True

    @staticmethod
    def _to_contents(messages: List[Message]) -> List[dict]:
        contents = []
        for message in messages:
            if message.role == Role.SYSTEM or message.message_type == MessageType.ERROR:
                continue
            contents.append(
                {
                    "role": "model" if message.role == Role.ASSISTANT else "user",
                    "parts": [message.content],
                }
            )
        return contents

    async def stream_completion(
        self,
        chat_settings: ChatSettings,
        messages: List[Message],
        on_fragment: FragmentHandler,
        context: Optional[ExchangeContext],
        cancellation: CancellationToken,
    ) -> str:
        """Stream a reply from Gemini."""
        if not self.is_initialized:
            raise RuntimeError("Gemini not initialized")

        system_prompt = next(
            (m.content for m in messages if m.role == Role.SYSTEM), ""
        )
        model = genai.GenerativeModel(
            model_name=chat_settings.model or self.default_model,
            system_instruction=build_system_instruction(system_prompt, context) or None,
        )
        generation_config = genai.GenerationConfig(
            temperature=chat_settings.temperature,
            max_output_tokens=self.max_output_tokens,
        )

        self.is_streaming = True
        full_response = ""
        try:
            response = await cancellation.run(
                model.generate_content_async(
                    self._to_contents(messages),
                    generation_config=generation_config,
                    stream=True,
                )
            )
            chunks = aiter(response)
            while True:
                chunk = await cancellation.run(anext(chunks, None))
                if chunk is None:
                    break

                try:
                    text = chunk.text
                except ValueError:
                    # Chunk without text parts (safety stop, empty candidate)
                    text = ""

                if text:
                    full_response += text
                    await on_fragment(text, [], False)

        except ExchangeCancelled:
            logger.info("Gemini stream cancelled", received=len(full_response))
        except google_exceptions.ClientError as e:
            logger.warning("Gemini rejected the request", error=str(e), code=e.code)
            raise ChatError(e.message or str(e), code=str(e.code)) from e
        except BlockedPromptException as e:
            raise ChatError("The message was blocked by the safety filters.") from e
        except Exception as e:
            logger.error("Error streaming Gemini response", error=str(e))
            raise
        finally:
            self.is_streaming = False

        await on_fragment("", [], True)
        return full_response

    def stop(self) -> None:
        logger.info("Stopping Gemini transport")
        self.is_initialized = False

    def get_status(self) -> dict:
        """Get Gemini transport status."""
        return {
            "provider": "gemini",
            "model": self.default_model,
            "is_streaming": self.is_streaming,
            "initialized": self.is_initialized,
        }
