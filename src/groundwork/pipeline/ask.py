"""Ask pipeline: embed → retrieve → gate → compose → generate → cite.

A refusal is a successful response: ok=True, the fixed refusal text for the
request language, no citations, plus the gate diagnostics. ok=False is
reserved for validation (400), unknown collections (404) and storage or
provider failures (5xx).
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field

from groundwork.config import GroundworkConfig
from groundwork.db.repository import Repository
from groundwork.errors import (
    CollectionNotFoundError,
    GroundworkError,
    StorageError,
    ValidationError,
)
from groundwork.rag.citations import Citation, build_citations, cited_numbers
from groundwork.rag.gate import GateConfig, GateDiagnostics, should_answer
from groundwork.rag.llm_client import Embedder, Generator, make_embedder, make_generator
from groundwork.rag.messages import is_refusal, refusal_message, resolve_language
from groundwork.rag.prompts import build_prompt
from groundwork.rag.retriever import RetrieverConfig, retrieve

logger = logging.getLogger(__name__)


@dataclass
class AskRequest:
    question: str
    collection: str
    k: int | None = None
    language: str | None = None


@dataclass
class AskResponse:
    ok: bool
    answer: str = ""
    citations: list[Citation] = field(default_factory=list)
    diagnostics: GateDiagnostics | None = None
    refused: bool = False
    error: str | None = None
    status: int = 200

    def to_dict(self) -> dict:
        if not self.ok:
            return {"ok": False, "error": self.error, "status": self.status}
        data: dict = {
            "ok": True,
            "answer": self.answer,
            "citations": [c.to_dict() for c in self.citations],
        }
        if self.diagnostics is not None:
            data["diagnostics"] = self.diagnostics.to_dict()
        return data


class AskPipeline:
    """Answer questions from one collection of the corpus.

    Args:
        repo:      Open Repository instance.
        config:    Merged configuration (retrieval, generation, language).
        embedder:  Optional embedding callable override (texts → vectors).
        generator: Optional generation callable override
                   ((instructions, user_content) → text).
    """

    def __init__(
        self,
        repo: Repository,
        config: GroundworkConfig,
        embedder: Embedder | None = None,
        generator: Generator | None = None,
    ) -> None:
        self._repo = repo
        self._config = config
        self._embed = embedder or make_embedder(
            config.embedding.model, config.embedding.batch_size
        )
        self._generate = generator or make_generator(
            config.generation.model,
            max_tokens=config.generation.max_tokens,
            temperature=config.generation.temperature,
        )

    def run(self, request: AskRequest) -> AskResponse:
        try:
            return self._answer(request)
        except sqlite3.Error as exc:
            logger.warning("Ask failed: %s", exc)
            err = StorageError(f"Corpus query failed: {exc}")
            return AskResponse(ok=False, error=str(err), status=err.status)
        except GroundworkError as exc:
            logger.warning("Ask failed: %s", exc)
            return AskResponse(ok=False, error=str(exc), status=exc.status)

    def _answer(self, request: AskRequest) -> AskResponse:
        question = (request.question or "").strip()
        collection_name = (request.collection or "").strip()
        if not question:
            raise ValidationError("A question is required.")
        if not collection_name:
            raise ValidationError("A collection name is required.")
        if request.k is not None and request.k < 1:
            raise ValidationError(f"k must be >= 1, got {request.k}")

        collection = self._repo.get_collection(collection_name)
        if collection is None:
            raise CollectionNotFoundError(collection_name)

        language = resolve_language(request.language, self._config.language)
        retrieval = self._config.retrieval
        evidence = retrieve(
            question,
            self._repo,
            collection.id,
            RetrieverConfig(
                embedding_model=self._config.embedding.model,
                top_k=request.k or retrieval.top_k,
            ),
            embedder=self._embed,
        )

        decision = should_answer(
            question,
            evidence,
            GateConfig(
                min_similarity=retrieval.min_similarity,
                max_keywords=retrieval.max_keywords,
                min_keyword_length=retrieval.min_keyword_length,
                keyword_match=retrieval.keyword_match,
            ),
        )
        if not decision.allow:
            logger.info(
                "Refused question in '%s': %s (top similarity %.3f)",
                collection_name,
                decision.reason,
                decision.diagnostics.top_similarity,
            )
            return AskResponse(
                ok=True,
                answer=refusal_message(language),
                diagnostics=decision.diagnostics,
                refused=True,
            )

        prompt = build_prompt(question, evidence, language)
        answer = self._generate(prompt.instructions, prompt.user_content)
        if is_refusal(answer):
            # The model declined despite passing evidence; report it as a refusal
            logger.info("Generator refused question in '%s'", collection_name)
            return AskResponse(
                ok=True,
                answer=answer.strip(),
                diagnostics=decision.diagnostics,
                refused=True,
            )

        citations = build_citations(evidence)
        logger.debug(
            "Answer cites %s of %d evidence blocks",
            sorted(cited_numbers(answer)),
            len(evidence),
        )
        return AskResponse(
            ok=True,
            answer=answer,
            citations=citations,
            diagnostics=decision.diagnostics,
        )
