"""
AI content generator: summaries, flashcards and keywords for study guide content.

Every public method is best-effort. Provider errors, timeouts and unparseable
responses are logged and turned into an empty result so that callers never
need to branch on AI failure.
"""

import asyncio
import json
import re
from functools import lru_cache
from typing import List, Optional, Type, TypeVar

import openai
import structlog
from google import genai
from google.genai import types
from pydantic import BaseModel, ValidationError

from core.config import settings
from core.exceptions import AIServiceException
from schemas.study_guide import Flashcard, Keyword

T = TypeVar("T", bound=BaseModel)
logger = structlog.get_logger("ai_manager")

# First "[" through the last "]", across newlines
JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")

SUMMARY_PROMPT = """Please provide a concise summary of the following study material.
Focus on the key concepts, main ideas, and important details.
Keep the summary clear, informative, and well-structured.

Study Material:
{content}
"""

FLASHCARDS_PROMPT = """Please create 5-10 flashcards based on the following study material.
Each flashcard should have a question on one side and the answer on the other.
Focus on key concepts, definitions, and important facts.
Format your response as a JSON array of objects with "question" and "answer" fields.

Study Material:
{content}

Example format:
[
  {{"question": "What is photosynthesis?", "answer": "The process by which green plants use sunlight to synthesize food from carbon dioxide and water."}},
  {{"question": "Who wrote 'Romeo and Juliet'?", "answer": "William Shakespeare"}}
]
"""

KEYWORDS_PROMPT = """Please extract 15-25 important keywords or key phrases from the following study material.
For each keyword, assign an importance score from 1-10 (10 being most important).
Format your response as a JSON array of objects with "word" and "importance" fields.

Study Material:
{content}

Example format:
[
  {{"word": "Photosynthesis", "importance": 9}},
  {{"word": "Cellular respiration", "importance": 8}},
  {{"word": "Mitochondria", "importance": 7}}
]
"""


def extract_json_array(text: Optional[str]) -> Optional[list]:
    """
    Pull the bracketed JSON array out of free text.

    Returns:
        The decoded list, or None when there is no bracketed span or it is not valid JSON.
    """
    if not text:
        return None
    match = JSON_ARRAY_PATTERN.search(text)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, list) else None


def parse_items(text: Optional[str], item_type: Type[T]) -> List[T]:
    """Parse a JSON array of ``item_type`` out of ``text``, skipping items that do not validate."""
    data = extract_json_array(text)
    if data is None:
        return []

    items = []
    for raw in data:
        try:
            items.append(item_type.model_validate(raw))
        except ValidationError as e:
            logger.debug("Skipping invalid AI item", item_type=item_type.__name__, error=str(e))
    return items


def parse_flashcards(text: Optional[str]) -> List[Flashcard]:
    return parse_items(text, Flashcard)


def parse_keywords(text: Optional[str]) -> List[Keyword]:
    return parse_items(text, Keyword)


class AIContentGenerator:
    """
    Wraps a single text-generation call three ways.

    The external call receives a model identifier, a token budget and one
    user-role prompt, and returns free text.
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.provider = (provider or settings.ai_provider).lower()
        if self.provider == "openai":
            self.api_key = api_key or settings.openai_api_key
            self.model = model or settings.openai_model
        else:
            self.provider = "gemini"
            self.api_key = api_key or settings.gemini_api_key
            self.model = model or settings.gemini_model
        self.timeout_seconds = timeout_seconds or settings.ai_request_timeout_seconds
        self._gemini_client = None
        self._openai_client = None

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def summarize(self, content: str) -> str:
        """Summary text for ``content``, or "" on any failure."""
        try:
            text = await self._complete(SUMMARY_PROMPT.format(content=content), settings.ai_summary_max_tokens)
        except Exception as e:
            logger.error("Summary generation failed", provider=self.provider, error=str(e))
            return ""
        return (text or "").strip()

    async def generate_flashcards(self, content: str) -> List[Flashcard]:
        """Flashcards for ``content`` (5-10 requested), or [] on any failure."""
        try:
            text = await self._complete(
                FLASHCARDS_PROMPT.format(content=content), settings.ai_flashcards_max_tokens
            )
        except Exception as e:
            logger.error("Flashcard generation failed", provider=self.provider, error=str(e))
            return []
        flashcards = parse_flashcards(text)
        if not flashcards:
            logger.warning("No flashcards parsed from AI response", provider=self.provider)
        return flashcards

    async def extract_keywords(self, content: str) -> List[Keyword]:
        """Keywords for ``content`` (15-25 requested, importance 1-10), or [] on any failure."""
        try:
            text = await self._complete(
                KEYWORDS_PROMPT.format(content=content), settings.ai_keywords_max_tokens
            )
        except Exception as e:
            logger.error("Keyword extraction failed", provider=self.provider, error=str(e))
            return []
        keywords = parse_keywords(text)
        if not keywords:
            logger.warning("No keywords parsed from AI response", provider=self.provider)
        return keywords

    async def _complete(self, prompt: str, max_tokens: int) -> str:
        """
        Run one completion under the configured timeout.

        Raises:
            AIServiceException: No API key, provider error or timeout
        """
        if not self.enabled:
            raise AIServiceException(detail=f"No {self.provider} API key configured", provider=self.provider)

        call = self._complete_with_openai if self.provider == "openai" else self._complete_with_gemini
        logger.info("Starting AI completion", provider=self.provider, model=self.model, max_tokens=max_tokens)
        try:
            return await asyncio.wait_for(call(prompt, max_tokens), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            raise AIServiceException(
                detail=f"AI request timeout after {self.timeout_seconds} seconds", provider=self.provider
            )
        except AIServiceException:
            raise
        except Exception as e:
            raise AIServiceException(detail=f"AI request failed: {e}", provider=self.provider)

    async def _complete_with_gemini(self, prompt: str, max_tokens: int) -> str:
        if self._gemini_client is None:
            self._gemini_client = genai.Client(api_key=self.api_key)
        response = await self._gemini_client.aio.models.generate_content(
            model=self.model,
            contents=prompt,
            config=types.GenerateContentConfig(max_output_tokens=max_tokens, temperature=0.3),
        )
        return response.text or ""

    async def _complete_with_openai(self, prompt: str, max_tokens: int) -> str:
        if self._openai_client is None:
            self._openai_client = openai.AsyncOpenAI(api_key=self.api_key)
        response = await self._openai_client.chat.completions.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        return response.choices[0].message.content or ""


@lru_cache
def get_ai_generator() -> AIContentGenerator:
    """FastAPI dependency returning the process-wide generator."""
    return AIContentGenerator()
