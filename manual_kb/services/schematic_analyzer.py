"""Vision analysis of rendered manual pages for schematic content.

``analyze`` always returns a valid SchematicAnalysis. Capability failures,
unparseable responses and responses that do not match the expected shape all
come back as "not detected" with zero confidence and ``error`` set.
"""

from typing import Optional

from pydantic import ValidationError

from manual_kb.core.exceptions import CapabilityError, ParseError
from manual_kb.core.llm_client import ImagePart
from manual_kb.core.rate_limiter import RateLimiter
from manual_kb.models.schematic_models import SchematicAnalysis
from manual_kb.prompts.system_prompts import SCHEMATIC_ANALYSIS_PROMPT
from manual_kb.utils.json_parser import extract_json_object
from manual_kb.utils.logging import get_logger

LOGGER = get_logger(__name__)


class SchematicPageAnalyzer:
    def __init__(self, client, temperature: float = 0.1, max_tokens: int = 4000):
        self.client = client
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def analyze(
        self,
        image,
        page_number: int,
        limiter: Optional[RateLimiter] = None,
    ) -> SchematicAnalysis:
        """Analyze one page image.

        Args:
            image: PIL image or ImagePart of the rendered page
            page_number: 1-indexed page number, for logging
            limiter: Optional limiter acquired before the request
        """
        LOGGER.info(f"Analyzing page {page_number} for schematics...")

        try:
            image_part = image if isinstance(image, ImagePart) else ImagePart.from_pil(image)
            if limiter is not None:
                await limiter.acquire()
            response_text = await self.client.generate_content(
                contents=[SCHEMATIC_ANALYSIS_PROMPT, image_part],
                generation_config={
                    "temperature": self.temperature,
                    "max_output_tokens": self.max_tokens,
                },
            )
        except CapabilityError as e:
            LOGGER.warning(
                f"Vision request failed for page {page_number}: {e}",
                extra={"page_number": page_number, "error_type": type(e).__name__},
            )
            return SchematicAnalysis.not_detected(str(e))
        except Exception as e:
            LOGGER.error(
                f"Error analyzing page {page_number}: {e}",
                extra={"page_number": page_number, "error_type": type(e).__name__},
                exc_info=True,
            )
            return SchematicAnalysis.not_detected(f"{type(e).__name__}: {e}")

        try:
            analysis = self.parse_response(response_text)
        except ParseError as e:
            LOGGER.warning(
                f"Failed to parse analysis for page {page_number}: {e}",
                extra={"page_number": page_number, "response": (response_text or "")[:500]},
            )
            return SchematicAnalysis.not_detected(str(e))

        if analysis.schematic_detected:
            LOGGER.info(
                f"Schematic detected on page {page_number} ({analysis.schematic_type.value}) "
                f"with {len(analysis.components)} components",
                extra={
                    "page_number": page_number,
                    "detection_confidence": analysis.detection_confidence,
                },
            )
        else:
            LOGGER.info(f"No schematic detected on page {page_number}")

        return analysis

    @staticmethod
    def parse_response(response_text: str) -> SchematicAnalysis:
        """Repair and validate a raw vision response.

        Raises:
            ParseError: If no JSON object is found or it does not match the schema
        """
        payload = extract_json_object(response_text)
        payload.pop("error", None)
        try:
            return SchematicAnalysis.model_validate(payload)
        except ValidationError as e:
            raise ParseError(
                f"Analysis does not match schema: {e.error_count()} validation errors",
                original_error=e,
            ) from e
