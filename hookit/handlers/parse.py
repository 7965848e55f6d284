"""Parse step handler and its format-specific sub-parsers."""

from __future__ import annotations

import csv
import io
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from ..contracts import DataContext, Step
from ..errors import ConfigurationError
from ..payloads import InvalidConfig, ParseConfig
from .base import StepHandler

logger = logging.getLogger(__name__)

FileParser = Callable[[bytes, ParseConfig], Any]


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ConfigurationError(f"uploaded file is not valid UTF-8: {e}") from e


def parse_csv(data: bytes, config: ParseConfig) -> list[dict[str, str]]:
    reader = csv.DictReader(io.StringIO(_decode(data)), delimiter=config.delimiter)
    return [dict(row) for row in reader]


def parse_json(data: bytes, config: ParseConfig) -> Any:
    try:
        return json.loads(_decode(data))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"uploaded file is not valid JSON: {e}") from e


class ParseStepHandler(StepHandler):
    """Adds parse metadata and optionally converts uploaded file bytes.

    The result always carries ``parsed_at`` and ``parse_type``. When the
    context holds ``file_data`` and a sub-parser is registered for the
    step's ``parseType`` (or ``format``), its output lands in
    ``parsed_data``. Formats without a parser are a no-op.
    """

    def __init__(self, parsers: Optional[Dict[str, FileParser]] = None) -> None:
        self._parsers: Dict[str, FileParser] = {"csv": parse_csv, "json": parse_json}
        if parsers:
            self._parsers.update(parsers)

    def register(self, key: str, parser: FileParser) -> None:
        self._parsers[key] = parser

    async def execute(self, step: Step, context: DataContext) -> Optional[DataContext]:
        config = step.config
        if isinstance(config, InvalidConfig):
            raise ConfigurationError(config.error)

        result = dict(context)
        result["parsed_at"] = datetime.now(timezone.utc)
        result["parse_type"] = config.parse_type

        file_data = context.get("file_data")
        key = config.parser_key
        if key and isinstance(file_data, (bytes, bytearray)):
            parser = self._parsers.get(key)
            if parser is None:
                logger.info(f"No parser registered for format '{key}', skipping conversion")
            else:
                result["parsed_data"] = parser(bytes(file_data), config)

        logger.info(f"Executed parse step: {step.name}")
        return result
