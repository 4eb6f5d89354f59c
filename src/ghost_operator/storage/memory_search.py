"""
Memory search over published post-mortems.

Two implementations of ``MemorySearch``:

- ``SensoMemorySearch``: the Senso context API, reached over HTTP
- ``LocalMemorySearch``: token-overlap scoring, optionally persisted to a
  JSON-lines file, for the ``simulate`` command and tests
"""
import asyncio
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import requests
from pydantic import ValidationError

from ..constants import DEFAULT_HTTP_TIMEOUT_SECONDS, DEFAULT_SENSO_BASE_URL
from ..exceptions import MemorySearchError
from ..models import MemoryDocument, MemoryHit, new_id
from ..retry import retry_async
from .base import MemorySearch

logger = logging.getLogger(__name__)

POST_MORTEM_DOCUMENT_TYPE = "post-mortem"

_TOKEN = re.compile(r"[a-z0-9]+")


class SensoMemorySearch(MemorySearch):
    """
    Senso-backed memory search.

    Documents are posted to ``/documents``; searches go to ``/search``
    filtered to post-mortem documents. Transport errors are retried, then
    degrade to ``None`` / ``[]``.

    Example:
        >>> memory = SensoMemorySearch(api_key="...", organization_id="org_1")
        >>> hits = await memory.search("redis timeout", limit=5)
    """

    def __init__(
        self,
        api_key: str,
        organization_id: str = "",
        base_url: str = DEFAULT_SENSO_BASE_URL,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json',
            'X-Organization-Id': organization_id,
        })

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.post(
            f"{self.base_url}{path}", json=payload, timeout=self.timeout
        )
        if response.status_code >= 400:
            raise MemorySearchError(
                f"POST {path} returned HTTP {response.status_code}"
            )
        return response.json() if response.content else {}

    @retry_async()
    async def _request(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await asyncio.to_thread(self._post, path, payload)

    async def store(self, document: MemoryDocument) -> Optional[str]:
        payload = {
            'title': document.title,
            'content': document.content,
            'metadata': document.metadata,
        }
        try:
            data = await self._request('/documents', payload)
        except Exception as e:
            logger.error(f"Senso store failed: {e}")
            return None

        doc_id = data.get('id') or data.get('document_id')
        if doc_id:
            logger.info(f"Post-mortem stored in memory search: {doc_id}")
        return doc_id

    async def search(self, query: str, limit: int = 5) -> List[MemoryHit]:
        payload = {
            'query': query,
            'limit': limit,
            'filters': {'type': POST_MORTEM_DOCUMENT_TYPE},
        }
        try:
            data = await self._request('/search', payload)
        except Exception as e:
            logger.error(f"Senso search failed: {e}")
            return []

        hits = []
        for result in data.get('results') or []:
            hits.append(MemoryHit(
                title=result.get('title') or 'Untitled',
                content=result.get('content') or result.get('snippet') or '',
                score=result.get('score') or 0.0,
            ))
        return hits[:limit]


def tokenize(text: str) -> set:
    return set(_TOKEN.findall(text.lower()))


class LocalMemorySearch(MemorySearch):
    """
    Token-overlap search over documents kept in process.

    The score is the fraction of query tokens present in the document's
    title and content. Documents sharing no token with the query are not
    returned.

    When ``path`` is given, documents are appended to it as JSON lines and
    reloaded on construction, so they carry over between CLI runs.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self._documents: Dict[str, MemoryDocument] = {}
        self.path = Path(path) if path else None
        if self.path is not None and self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            with open(self.path, encoding='utf-8') as f:
                for line_num, line in enumerate(f, 1):
                    if not line.strip():
                        continue
                    try:
                        document = MemoryDocument.model_validate_json(line)
                    except ValidationError as e:
                        logger.warning(f"Skipping malformed memory document at {self.path}:{line_num}: {e}")
                        continue
                    self._documents[new_id()] = document
        except OSError as e:
            raise MemorySearchError(f"Cannot read local memory from {self.path}: {e}") from e
        logger.debug(f"Loaded {len(self._documents)} local memory document(s) from {self.path}")

    def _append(self, document: MemoryDocument) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(document.model_dump_json() + "\n")

    async def store(self, document: MemoryDocument) -> Optional[str]:
        if self.path is not None:
            try:
                await asyncio.to_thread(self._append, document)
            except OSError as e:
                raise MemorySearchError(f"Cannot write local memory to {self.path}: {e}") from e
        doc_id = new_id()
        self._documents[doc_id] = document
        logger.debug(f"Stored local memory document {doc_id}: {document.title}")
        return doc_id

    async def search(self, query: str, limit: int = 5) -> List[MemoryHit]:
        query_tokens = tokenize(query)
        if not query_tokens:
            return []

        scored = []
        for order, document in enumerate(self._documents.values()):
            doc_tokens = tokenize(f"{document.title} {document.content}")
            overlap = len(query_tokens & doc_tokens)
            if overlap:
                score = overlap / len(query_tokens)
                scored.append((-score, order, document, score))

        scored.sort(key=lambda item: (item[0], item[1]))
        return [
            MemoryHit(title=doc.title, content=doc.content, score=score)
            for _, _, doc, score in scored[:limit]
        ]

    def __len__(self) -> int:
        return len(self._documents)
