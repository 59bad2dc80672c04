"""LLM enhancement of inferred documentation.

Adds what static analysis cannot recover: a prose description, request and
response examples, edge cases and validation rules.
"""

import json
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Iterable

from api_autodoc.builder.base import Documentation
from api_autodoc.llm import LlmClient

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

logger = logging.getLogger("api_autodoc.generator.enhancer")

_BULLET = re.compile(r"^(?:[-*]|\d+[.)])\s*")


class DocumentationEnhancer:
    """Enhances Documentation records with an LLM."""

    def __init__(self, model: str | None = None, client: LlmClient | None = None):
        self.client = client or LlmClient(model=model)
        self.system_prompt = (PROMPTS_DIR / "enhance.md").read_text(encoding="utf-8")

    def enhance(self, doc: Documentation) -> Documentation:
        """Return an enhanced copy; the input record is never modified."""
        enhanced = doc.model_copy(deep=True)
        logger.info("Enhancing %s", doc.key)

        try:
            if not doc.description.strip():
                enhanced.description = self._ask(self._description_prompt(doc)).strip()

            if doc.parameters and not doc.examples.get("request"):
                enhanced.examples["request"] = parse_json_response(self._ask(self._request_example_prompt(doc)))

            if not doc.examples.get("response"):
                enhanced.examples["response"] = parse_json_response(self._ask(self._response_example_prompt(doc)))

            enhanced.edge_cases = parse_bullets(self._ask(self._edge_cases_prompt(doc)))
            enhanced.validation_rules = parse_bullets(self._ask(self._validation_prompt(doc)))
        except Exception as e:
            logger.warning("Error enhancing %s: %s", doc.key, e)
            failed = doc.model_copy(deep=True)
            failed.ai_enhanced = False
            failed.ai_enhancement_error = str(e)
            return failed

        enhanced.ai_enhanced = True
        enhanced.ai_enhancement_error = None
        return enhanced

    def enhance_batch(
        self,
        docs: Iterable[Documentation],
        concurrency: int = 3,
        skip_existing: bool = False,
    ) -> list[Documentation]:
        """Enhance records on a pool of ``concurrency`` threads, keeping input order."""
        docs = list(docs)
        logger.info("Enhancing %d endpoints (concurrency: %d)", len(docs), concurrency)

        def work(doc: Documentation) -> Documentation:
            if skip_existing and doc.ai_enhanced:
                return doc
            return self.enhance(doc)

        with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
            results = list(pool.map(work, docs))

        logger.info("Enhanced %d/%d endpoints", sum(1 for r in results if r.ai_enhanced), len(docs))
        return results

    def _ask(self, user: str) -> str:
        return self.client.call(system=self.system_prompt, user=user)

    def _description_prompt(self, doc: Documentation) -> str:
        return (
            "Write a description for this endpoint.\n\n"
            f"Endpoint: {doc.key}\n"
            f"Handler: {doc.handler_name}\n"
            f"Parameters: {_dump([p.model_dump() for p in doc.parameters])}\n"
            f"Middleware: {', '.join(doc.middleware) or 'none'}\n"
        )

    def _request_example_prompt(self, doc: Documentation) -> str:
        by_location = {
            location: [p.model_dump() for p in doc.parameters if p.location == location]
            for location in ("path", "query", "body")
        }
        return (
            "Generate a realistic example request for this endpoint with sample path "
            "parameter values, a sample query string and a sample body where applicable.\n\n"
            f"Endpoint: {doc.key}\n"
            f"Path Parameters: {_dump(by_location['path'])}\n"
            f"Query Parameters: {_dump(by_location['query'])}\n"
            f"Body Parameters: {_dump(by_location['body'])}\n"
        )

    def _response_example_prompt(self, doc: Documentation) -> str:
        codes = ", ".join(str(code) for code in doc.status_codes) or "200"
        return (
            "Generate a realistic success response example for this endpoint.\n\n"
            f"Endpoint: {doc.key}\n"
            f"Expected Status Codes: {codes}\n"
            f"Response Schema: {_dump(doc.response_schema)}\n"
        )

    def _edge_cases_prompt(self, doc: Documentation) -> str:
        return (
            "List 3-5 edge cases and error scenarios for this endpoint: invalid inputs, "
            "missing required fields, authorization and business logic cases.\n\n"
            f"Endpoint: {doc.key}\n"
            f"Parameters: {_dump([p.model_dump() for p in doc.parameters])}\n"
        )

    def _validation_prompt(self, doc: Documentation) -> str:
        required = [p.model_dump() for p in doc.parameters if p.required]
        return (
            "List 3-5 validation rules for this endpoint: required fields, formats, "
            "value ranges and business rules.\n\n"
            f"Endpoint: {doc.key}\n"
            f"Required Parameters: {_dump(required)}\n"
            f"All Parameters: {_dump([p.model_dump() for p in doc.parameters])}\n"
        )


def parse_json_response(text: str) -> Any:
    """Pull a JSON object out of a model response. Unparseable text is kept raw."""
    match = re.search(r"```(?:json)?\s*(.*?)\s*```", text, re.DOTALL)
    if match:
        candidate = match.group(1).strip()
    else:
        match = re.search(r"\{.*\}", text, re.DOTALL)
        candidate = match.group(0) if match else text

    try:
        return json.loads(candidate)
    except ValueError:
        logger.warning("Could not parse example as JSON")
        return {"_raw": text}


def parse_bullets(text: str) -> list[str]:
    items = []
    for line in text.splitlines():
        line = line.strip()
        if line and _BULLET.match(line):
            items.append(_BULLET.sub("", line, count=1))
    return items


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)
