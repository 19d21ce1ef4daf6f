"""LLM-based extraction of candidate terms and parts from manual text.

Each chunk gets one completion request. A chunk whose request fails, whose
response cannot be parsed, or whose named field is not an array is logged and
skipped; the remaining chunks are still processed. Individual records that
fail validation are dropped without discarding the rest of their chunk.
"""

from abc import abstractmethod
from typing import Any, Dict, Generic, List, Type, TypeVar

from pydantic import BaseModel, ValidationError

from manual_kb.core.exceptions import CapabilityError, ParseError
from manual_kb.models.extraction_models import CandidatePart, CandidateTerm
from manual_kb.pipeline.context import PipelineContext
from manual_kb.prompts.system_prompts import PART_EXTRACTION_PROMPT, TERM_EXTRACTION_PROMPT
from manual_kb.services.base_service import BaseService
from manual_kb.services.chunking_service import TextChunker
from manual_kb.utils.json_parser import extract_json_object
from manual_kb.utils.logging import get_logger

LOGGER = get_logger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class StructuredExtractor(BaseService, Generic[RecordT]):
    """Chunked extraction of one record kind.

    Subclasses set ``record_field`` (the array key in the response object),
    ``record_model`` and the system prompt.

    Attributes:
        client: Completion client exposing ``generate_content``
        chunk_size: Maximum characters per request
        temperature: Sampling temperature for extraction requests
    """

    record_field: str
    record_model: Type[RecordT]

    def __init__(self, client, chunk_size: int = 3000, temperature: float = 0.3):
        super().__init__()
        self.client = client
        self.chunk_size = chunk_size
        self.temperature = temperature

    @abstractmethod
    def get_extraction_prompt(self) -> str:
        pass

    def validate(self, text: str, context: PipelineContext) -> None:
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    async def extract(self, text: str, context: PipelineContext) -> List[RecordT]:
        return await self.execute(text, context)

    async def run(self, text: str, context: PipelineContext) -> List[RecordT]:
        """Extract candidates from every chunk, concatenated in chunk order."""
        chunks = TextChunker(text, self.chunk_size)
        total_chunks = len(chunks)
        records: List[RecordT] = []
        failed_chunks = 0

        LOGGER.info(
            f"Extracting {self.record_field} from {total_chunks} chunks",
            extra={"document_id": str(context.document_id), "total_chunks": total_chunks},
        )

        for index, chunk in enumerate(chunks):
            LOGGER.debug(f"Processing chunk {index + 1}/{total_chunks}")
            try:
                chunk_records = await self.extract_chunk(chunk, context)
            except (CapabilityError, ParseError) as e:
                failed_chunks += 1
                LOGGER.warning(
                    f"Skipping chunk {index + 1}/{total_chunks}: {e}",
                    extra={
                        "document_id": str(context.document_id),
                        "chunk_index": index,
                        "record_field": self.record_field,
                        "error_type": type(e).__name__,
                    },
                )
                continue
            records.extend(chunk_records)

        LOGGER.info(
            f"Extracted {len(records)} {self.record_field} candidates "
            f"({failed_chunks}/{total_chunks} chunks skipped)",
            extra={
                "document_id": str(context.document_id),
                "candidates": len(records),
                "failed_chunks": failed_chunks,
            },
        )
        return records

    async def extract_chunk(self, chunk: str, context: PipelineContext) -> List[RecordT]:
        """One completion request for one chunk.

        Raises:
            CapabilityError: If the completion call fails
            ParseError: If the response does not hold the expected array
        """
        await context.completion_limiter.acquire()
        response_text = await self.client.generate_content(
            contents=chunk,
            system_instruction=self.get_extraction_prompt(),
            generation_config={
                "temperature": self.temperature,
                "response_mime_type": "application/json",
            },
        )
        return self.parse_records(response_text)

    def parse_records(self, response_text: str) -> List[RecordT]:
        try:
            payload = extract_json_object(response_text)
        except ParseError:
            LOGGER.error(
                f"{self.__class__.__name__}: Failed to parse JSON",
                extra={"response": (response_text or "")[:500]},
            )
            raise

        items = payload.get(self.record_field)
        if not isinstance(items, list):
            raise ParseError(
                f"Expected '{self.record_field}' to be an array, got {type(items).__name__}"
            )

        records: List[RecordT] = []
        for position, item in enumerate(items):
            record = self._validate_item(item, position)
            if record is not None:
                records.append(record)
        return records

    def _validate_item(self, item: Any, position: int):
        if not isinstance(item, dict):
            LOGGER.warning(
                f"Dropping non-object {self.record_field} item",
                extra={"position": position, "item_type": type(item).__name__},
            )
            return None
        try:
            return self.record_model.model_validate(item)
        except ValidationError as e:
            LOGGER.warning(
                f"Dropping invalid {self.record_field} item: {e.error_count()} validation errors",
                extra={"position": position, "item": _preview(item)},
            )
            return None


def _preview(item: Dict[str, Any]) -> str:
    return str(item)[:500]


class TermExtractor(StructuredExtractor[CandidateTerm]):
    """Extracts controlled-vocabulary terms with their spoken and typo variations."""

    record_field = "terms"
    record_model = CandidateTerm

    def get_extraction_prompt(self) -> str:
        return TERM_EXTRACTION_PROMPT


class PartExtractor(StructuredExtractor[CandidatePart]):
    """Extracts catalog parts (name, number, category, price)."""

    record_field = "parts"
    record_model = CandidatePart

    def get_extraction_prompt(self) -> str:
        return PART_EXTRACTION_PROMPT
