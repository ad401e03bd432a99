"""
Live connection over a google-genai live session.
"""

import logging
from typing import AsyncGenerator, List

from google.genai import live, types

from ..core.interfaces import BaseLlmConnection
from ..core.models import LlmResponse

logger = logging.getLogger(__name__)


class GeminiLlmConnection(BaseLlmConnection):
    """Wraps a google-genai ``AsyncSession``."""

    def __init__(self, gemini_session: live.AsyncSession):
        self._gemini_session = gemini_session

    async def send_history(self, history: List[types.Content]) -> None:
        contents = [content for content in history if content.parts]
        if not contents:
            logger.info("No history to send")
            return
        logger.debug(f"Sending history with {len(contents)} contents")
        await self._gemini_session.send_client_content(
            turns=contents,
            turn_complete=contents[-1].role == "user"
        )

    async def send_content(self, content: types.Content) -> None:
        parts = content.parts or []
        if parts and parts[0].function_response:
            function_responses = [part.function_response for part in parts if part.function_response]
            logger.debug(f"Sending {len(function_responses)} function responses")
            await self._gemini_session.send_tool_response(function_responses=function_responses)
            return
        await self._gemini_session.send_client_content(turns=[content], turn_complete=True)

    async def send_realtime(self, blob: types.Blob) -> None:
        await self._gemini_session.send_realtime_input(media=blob)

    async def receive(self) -> AsyncGenerator[LlmResponse, None]:
        text = ""
        async for message in self._gemini_session.receive():
            server_content = message.server_content
            if server_content:
                model_turn = server_content.model_turn
                if model_turn and model_turn.parts:
                    llm_response = LlmResponse(content=model_turn)
                    if model_turn.parts[0].text:
                        text += model_turn.parts[0].text
                        llm_response.partial = True
                    elif text and not model_turn.parts[0].inline_data:
                        yield self._text_response(text)
                        text = ""
                    yield llm_response

                if server_content.turn_complete:
                    if text:
                        yield self._text_response(text)
                        text = ""
                    yield LlmResponse(
                        turn_complete=True,
                        interrupted=server_content.interrupted
                    )
                    break
                if server_content.interrupted:
                    if text:
                        yield self._text_response(text, interrupted=True)
                        text = ""
                    else:
                        yield LlmResponse(interrupted=True)

            if message.tool_call and message.tool_call.function_calls:
                if text:
                    yield self._text_response(text)
                    text = ""
                parts = [
                    types.Part(function_call=function_call)
                    for function_call in message.tool_call.function_calls
                ]
                yield LlmResponse(content=types.Content(role="model", parts=parts))

    @staticmethod
    def _text_response(text: str, interrupted: bool = False) -> LlmResponse:
        return LlmResponse(
            content=types.Content(role="model", parts=[types.Part(text=text)]),
            interrupted=interrupted or None
        )

    async def close(self) -> None:
        await self._gemini_session.close()
