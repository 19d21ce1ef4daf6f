import asyncio
import base64
import io
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import httpx
from google import genai
from google.genai import types
from httpx import HTTPStatusError, TimeoutException

from manual_kb.core.exceptions import CapabilityError, CapabilityTimeoutError, ConfigurationError
from manual_kb.utils.logging import get_logger

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class ImagePart:
    """Raw image bytes sent alongside text to a vision-capable model."""

    data: bytes
    mime_type: str = "image/png"

    @classmethod
    def from_pil(cls, image, image_format: str = "PNG") -> "ImagePart":
        buffer = io.BytesIO()
        image.save(buffer, format=image_format)
        return cls(data=buffer.getvalue(), mime_type=f"image/{image_format.lower()}")

    def to_data_uri(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


ContentPart = Union[str, ImagePart, Dict[str, Any]]
Contents = Union[str, List[ContentPart]]


class BaseLLMClient:
    """Base client for LLM API interactions.

    Handles common logic for HTTP requests, retries, timeout management,
    and error logging.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: int = 2
    ):
        """Initialize the LLM client.

        Args:
            api_key: API key for authentication
            base_url: Base URL for the API
            timeout: Request timeout in seconds
            max_retries: Maximum number of retries
            retry_delay: Base delay for exponential backoff
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.logger = LOGGER

    async def call_api(
        self,
        endpoint: str = "",
        payload: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """POST a JSON payload with retry logic.

        Raises:
            CapabilityError: If the API call fails after retries
            CapabilityTimeoutError: If the API call times out after retries
        """
        url = f"{self.base_url}{endpoint}" if endpoint else self.base_url

        default_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if headers:
            default_headers.update(headers)

        self.logger.debug(f"Calling LLM API: {url}", extra={"timeout": self.timeout})

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(url, headers=default_headers, json=payload)
                    response.raise_for_status()
                    return self._decode_response(response, url)

                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt, url)

                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt, url)

                except httpx.HTTPError as e:
                    await self._handle_generic_error(e, attempt, url)

        raise CapabilityError(f"Failed to call API {url} after {self.max_retries} attempts")

    def _decode_response(self, response: httpx.Response, url: str) -> Dict[str, Any]:
        """Parse a successful response body, which must be a JSON object."""
        try:
            body = response.json()
        except ValueError as e:
            self.logger.warning(
                f"Non-JSON response body from {url}",
                extra={"url": url, "body": response.text[:500]},
            )
            raise CapabilityError(f"Non-JSON response from {url}: {e}", original_error=e)

        if not isinstance(body, dict):
            raise CapabilityError(f"Expected a JSON object from {url}, got {type(body).__name__}")
        return body

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int, url: str):
        status_code = error.response.status_code
        error_body = error.response.text

        self.logger.warning(
            f"API HTTP error (Attempt {attempt + 1}/{self.max_retries})",
            extra={
                "url": url,
                "status_code": status_code,
                "error_body": error_body[:500]
            }
        )

        # Don't retry on client errors (4xx) unless it's rate limiting (429)
        if 400 <= status_code < 500 and status_code != 429:
            raise CapabilityError(f"API Client Error {status_code}: {error_body[:500]}", original_error=error)

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise CapabilityError(f"API HTTP Error {status_code} after retries", original_error=error)

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int, url: str):
        self.logger.warning(
            f"API Timeout (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise CapabilityTimeoutError(
                f"API Timeout after {self.max_retries} attempts", original_error=error
            )

    async def _handle_generic_error(self, error: Exception, attempt: int, url: str):
        self.logger.warning(
            f"API Generic Error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"url": url, "error": str(error)}
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise CapabilityError(f"API Error: {error}", original_error=error)

    async def _wait_before_retry(self, attempt: int):
        """Exponential backoff wait."""
        wait_time = self.retry_delay * (2 ** attempt)
        await asyncio.sleep(wait_time)


class GeminiClient:
    """Wrapper for Google Gemini API client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: int = 2,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        try:
            self.client = genai.Client(api_key=self.api_key)
            LOGGER.info(f"Initialized Gemini client with model {self.model}")
        except Exception as e:
            LOGGER.error(f"Failed to initialize Gemini client: {e}")
            raise ConfigurationError(f"Failed to initialize Gemini client: {e}", original_error=e)

    @staticmethod
    def _to_parts(contents: Contents) -> List[Any]:
        if isinstance(contents, str):
            return [contents]

        parts: List[Any] = []
        for part in contents:
            if isinstance(part, ImagePart):
                parts.append(types.Part.from_bytes(data=part.data, mime_type=part.mime_type))
            elif isinstance(part, dict) and "text" in part:
                parts.append(part["text"])
            else:
                parts.append(part)
        return parts

    async def generate_content(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content using Gemini model.

        Args:
            contents: Input content (string or list of text/image parts)
            system_instruction: Optional system instruction
            generation_config: Optional generation config (temperature, etc.)

        Returns:
            Generated text response

        Raises:
            CapabilityError: If generation fails after retries
        """
        config = types.GenerateContentConfig(temperature=0.0)

        if generation_config:
            if "temperature" in generation_config:
                config.temperature = generation_config["temperature"]
            if "max_output_tokens" in generation_config:
                config.max_output_tokens = generation_config["max_output_tokens"]
            if "response_mime_type" in generation_config:
                config.response_mime_type = generation_config["response_mime_type"]

        if system_instruction:
            config.system_instruction = system_instruction

        parts = self._to_parts(contents)

        for attempt in range(self.max_retries):
            try:
                response = await asyncio.wait_for(
                    self.client.aio.models.generate_content(
                        model=self.model,
                        contents=parts,
                        config=config
                    ),
                    timeout=self.timeout,
                )

                if not response.text:
                    LOGGER.warning("Empty response from Gemini")
                    return ""

                return response.text

            except asyncio.TimeoutError as e:
                LOGGER.warning(f"Gemini timeout (Attempt {attempt + 1}/{self.max_retries})")
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(self.retry_delay * (2 ** attempt))
                else:
                    raise CapabilityTimeoutError(
                        f"Gemini timeout after {self.max_retries} attempts", original_error=e
                    )

            except Exception as e:
                LOGGER.warning(
                    f"Gemini API error (Attempt {attempt + 1}/{self.max_retries}): {e}"
                )
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(self.retry_delay * (2 ** attempt))
                else:
                    LOGGER.error(f"Gemini generation failed after retries: {e}", exc_info=True)
                    raise CapabilityError(f"Gemini generation failed: {e}", original_error=e)

        raise CapabilityError("Gemini generation failed")


class OpenRouterClient:
    """Wrapper for OpenRouter's chat-completions API.

    Exposes the same ``generate_content`` interface as GeminiClient.
    """

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: int = 2,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries

        self.client = BaseLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )

        LOGGER.info(f"Initialized OpenRouter client with model {self.model}")

    @staticmethod
    def _to_message_content(contents: Contents) -> Union[str, List[Dict[str, Any]]]:
        if isinstance(contents, str):
            return contents

        if not any(isinstance(part, ImagePart) for part in contents):
            text = ""
            for part in contents:
                if isinstance(part, str):
                    text += part
                elif isinstance(part, dict) and "text" in part:
                    text += part["text"]
            return text

        content: List[Dict[str, Any]] = []
        for part in contents:
            if isinstance(part, ImagePart):
                content.append({"type": "image_url", "image_url": {"url": part.to_data_uri()}})
            elif isinstance(part, str):
                content.append({"type": "text", "text": part})
            elif isinstance(part, dict) and "text" in part:
                content.append({"type": "text", "text": part["text"]})
        return content

    async def generate_content(
        self,
        contents: Contents,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Generate content using OpenRouter model.

        Args:
            contents: Input content (string or list of text/image parts)
            system_instruction: Optional system instruction
            generation_config: Optional generation config (temperature, etc.)

        Returns:
            Generated text response

        Raises:
            CapabilityError: If generation fails
        """
        messages = []

        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})

        messages.append({"role": "user", "content": self._to_message_content(contents)})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": 0.0,
        }

        if generation_config:
            if "temperature" in generation_config:
                payload["temperature"] = generation_config["temperature"]
            if "max_output_tokens" in generation_config:
                payload["max_tokens"] = generation_config["max_output_tokens"]
            if generation_config.get("response_mime_type") == "application/json":
                payload["response_format"] = {"type": "json_object"}

        response = await self.client.call_api(payload=payload)

        choices = response.get("choices") or []
        message = None
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
        if not isinstance(message, dict):
            LOGGER.error(f"Unexpected OpenRouter response format: {str(response)[:500]}")
            raise CapabilityError("Invalid response format from OpenRouter")

        content = message.get("content") or ""
        if not isinstance(content, str):
            raise CapabilityError(f"Non-text content from OpenRouter: {type(content).__name__}")
        if not content:
            LOGGER.warning("Empty response from OpenRouter")
        return content


def create_llm_client(
    provider: str,
    api_key: str,
    model: str,
    base_url: Optional[str] = None,
    timeout: int = 60,
    max_retries: int = 3,
    retry_delay: int = 2,
) -> Union[GeminiClient, OpenRouterClient]:
    """Build the completion client for a provider name ("openrouter" or "gemini")."""
    if not api_key:
        raise ConfigurationError(f"Missing API key for LLM provider '{provider}'")

    if provider == "gemini":
        return GeminiClient(
            api_key=api_key,
            model=model,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )
    if provider == "openrouter":
        return OpenRouterClient(
            api_key=api_key,
            model=model,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
        )

    raise ConfigurationError(f"Unsupported LLM provider: {provider}")


def _provider_key(llm_settings, provider: str) -> str:
    return llm_settings.gemini_api_key if provider == "gemini" else llm_settings.openrouter_api_key


def create_text_client(llm_settings):
    """Completion client for term/part extraction, built from LLMSettings."""
    provider = llm_settings.provider
    return create_llm_client(
        provider=provider,
        api_key=_provider_key(llm_settings, provider),
        model=llm_settings.text_model,
        base_url=llm_settings.openrouter_api_url,
        timeout=llm_settings.timeout,
        max_retries=llm_settings.max_retries,
        retry_delay=llm_settings.retry_delay,
    )


def create_vision_client(llm_settings):
    """Completion client for schematic page analysis, built from LLMSettings."""
    provider = llm_settings.vision_provider
    return create_llm_client(
        provider=provider,
        api_key=_provider_key(llm_settings, provider),
        model=llm_settings.vision_model,
        base_url=llm_settings.openrouter_api_url,
        timeout=llm_settings.timeout,
        max_retries=llm_settings.max_retries,
        retry_delay=llm_settings.retry_delay,
    )
