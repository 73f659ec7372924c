"""Relevance scoring for free-text queries against the knowledge graph.

Two engines live here:

- **Best match** (:func:`best_match`): deterministic field/match-kind
  scoring. Every node is checked field by field (id, paths, description,
  doc content) for exact, prefix, phrase and all-words matches; the
  highest scoring node wins and gets a confidence in ``[0, 1]`` derived
  from *how* it matched. Weak winners come with runner-up alternatives.
- **Fuzzy search** (:func:`search`, :func:`search_docs`): an approximate
  index over the same fields using rapidfuzz partial ratios with
  per-field weights. Scores are normalised to ``[0, 1]``, and exact
  substring hits of any query word rank above purely approximate ones.
"""

from __future__ import annotations

import logging
import sys
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple, TypeVar

from rapidfuzz import fuzz

from .errors import ScopeNotFoundError
from .models import (
    BELONGS_TO,
    Alternative,
    AnyNode,
    BestMatch,
    DocNode,
    DocRef,
    KnowledgeGraph,
    MatchCandidate,
    SearchResult,
    priority_rank,
)
from .traversal import build_child_index

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Below this confidence a best match carries alternatives.
CONFIDENCE_THRESHOLD = 0.7
MAX_ALTERNATIVES = 5
ALTERNATIVE_DESC_CHARS = 60

# Scores per match kind as (single-word query, multi-word query).
_ID_SCORES: Dict[str, Tuple[int, int]] = {
    "exact": (150, 200),
    "prefix": (80, 95),
    "partial-prefix": (30, 40),
    "phrase": (50, 70),
    "all-words": (40, 40),
}

# field -> (exact, phrase, all-words); None where the kind is not scored.
_FIELD_SCORES: Dict[str, Tuple[Optional[Tuple[int, int]], Tuple[int, int], int]] = {
    "desc": ((40, 50), (20, 30), 15),
    "resolvedPath": ((90, 105), (60, 75), 45),
    "path": (None, (55, 65), 40),
    "filePath": ((90, 105), (60, 75), 45),
    "importPath": (None, (55, 65), 40),
    "content": (None, (10, 15), 8),
}

PATH_FIELDS = ("resolvedPath", "filePath", "path")

# Fuzzy index configuration.
SEARCH_KEYS: Tuple[Tuple[str, float], ...] = (
    ("id", 0.35),
    ("desc", 0.25),
    ("path", 0.2),
    ("content", 0.2),
)
DOC_SEARCH_KEYS: Tuple[Tuple[str, float], ...] = (
    ("id", 0.2),
    ("explains", 0.4),
    ("content", 0.3),
    ("filePath", 0.1),
)
MIN_SIMILARITY = 0.6
MIN_WORD_LENGTH = 2
EXACT_HIT_FACTOR = 0.5
ESSENTIAL_DOC_FACTOR = 0.7
MIN_DOC_SCORE = 0.2
_EPSILON = sys.float_info.epsilon


# ===================================================================
# Best match
# ===================================================================


def _split_words(term: str) -> List[str]:
    return [w for w in term.split() if w]


def _all_words(text: str, words: Sequence[str]) -> bool:
    return all(word in text for word in words)


def _is_word_boundary(node_id: str, position: int) -> bool:
    """True if a prefix of length *position* ends on an identifier word boundary."""
    if position >= len(node_id):
        return True
    char = node_id[position]
    return not char.isalnum() or char.isupper()


def _scored_fields(node: AnyNode) -> Iterator[Tuple[str, str]]:
    """(field name, text) pairs checked after the id, in weight order."""
    if isinstance(node, DocNode):
        if node.explains:
            yield "desc", node.explains
        yield "filePath", node.file_path
        yield "content", node.content
        return

    yield "desc", node.desc
    resolved_path = getattr(node, "resolved_path", None)
    if resolved_path:
        yield "resolvedPath", resolved_path
    declared_path = getattr(node, "path", None)
    if declared_path:
        yield "path", declared_path
    import_path = getattr(node, "import_path", None)
    if import_path:
        yield "importPath", import_path


def match_node(node_id: str, node: AnyNode, query: str) -> Optional[MatchCandidate]:
    """Score one node against *query*; ``None`` when no field matches."""
    term = query.strip().lower()
    words = _split_words(term)
    if not words:
        return None
    multi = len(words) > 1
    pick = 1 if multi else 0

    matched: List[str] = []
    score = 0

    id_lower = node_id.lower()
    id_kind: Optional[str] = None
    if id_lower == term:
        id_kind = "exact"
    elif id_lower.startswith(term):
        id_kind = "prefix" if _is_word_boundary(node_id, len(term)) else "partial-prefix"
    elif term in id_lower:
        id_kind = "phrase"
    elif multi and _all_words(id_lower, words):
        id_kind = "all-words"
    if id_kind:
        matched.append(f"id:{id_kind}")
        score += _ID_SCORES[id_kind][pick]

    for field_name, value in _scored_fields(node):
        exact, phrase, all_words = _FIELD_SCORES[field_name]
        text = value.lower()
        if exact is not None and text == term:
            matched.append(f"{field_name}:exact")
            score += exact[pick]
        elif term in text:
            matched.append(f"{field_name}:phrase")
            score += phrase[pick]
        elif multi and _all_words(text, words):
            matched.append(f"{field_name}:all-words")
            score += all_words

    if not matched:
        return None
    return MatchCandidate(id=node_id, node=node, matched_fields=matched, score=score, multi_word=multi)


def calculate_confidence(candidate: MatchCandidate) -> float:
    """Confidence in ``[0, 1]`` derived from how the candidate matched.

    Phrase matches only count for multi-word queries. A single word that
    is a substring of a path or description is scored by the path rule
    (0.75) or by raw score (0.65/0.5/0.3) instead, so it still carries
    alternatives. Tools that treat every phrase hit alike give those
    cases 0.8 and 0.7.
    """
    parsed = [tuple(f.split(":", 1)) for f in candidate.matched_fields]
    kinds = {kind for _, kind in parsed}

    has_exact = "exact" in kinds
    has_id_prefix = ("id", "prefix") in parsed
    has_phrase = candidate.multi_word and "phrase" in kinds
    has_all_words = "all-words" in kinds
    has_path = any(field_name in PATH_FIELDS for field_name, _ in parsed)

    if has_exact:
        return 1.0
    if has_id_prefix:
        return 0.85
    if has_phrase and has_path:
        return 0.8
    if has_path:
        return 0.75
    if has_phrase:
        return 0.7
    if has_all_words:
        return 0.6
    if candidate.score >= 50:
        return 0.65
    if candidate.score >= 20:
        return 0.5
    return 0.3


def _alternative(candidate: MatchCandidate) -> Alternative:
    desc = candidate.node.desc or ""
    if len(desc) > ALTERNATIVE_DESC_CHARS:
        desc = desc[:ALTERNATIVE_DESC_CHARS] + "..."
    return Alternative(id=candidate.id, node_type=candidate.node.node_type, desc=desc)


def scope_filter(graph: KnowledgeGraph, folder_id: str) -> Callable[[str, AnyNode], bool]:
    """Predicate keeping nodes inside the ``contains`` subtree of *folder_id*.

    Terms are global vocabulary and always pass. Modules pass when they
    belong to a folder in scope, exports when they belong to a folder or
    module in scope. Docs never pass a scoped search.
    """
    if folder_id not in graph.folders:
        raise ScopeNotFoundError(folder_id)

    subfolders = build_child_index(graph.edges, include_members=False)
    folders: Set[str] = {folder_id}
    stack = [folder_id]
    while stack:
        current = stack.pop()
        for child in subfolders.get(current, []):
            if child in graph.folders and child not in folders:
                folders.add(child)
                stack.append(child)

    owners = {e.src: e.dst for e in graph.edges if e.edge_type == BELONGS_TO}
    modules = {mid for mid in graph.modules if owners.get(mid) in folders}

    def _in_scope(node_id: str, node: AnyNode) -> bool:
        if node.node_type == "term":
            return True
        if node.node_type == "folder":
            return node_id in folders
        if node.node_type == "module":
            return node_id in modules
        if node.node_type == "export":
            owner = owners.get(node_id)
            return owner in folders or owner in modules
        return False

    return _in_scope


def rank_candidates(
    graph: KnowledgeGraph, query: str, scope: Optional[str] = None
) -> List[MatchCandidate]:
    """All matching candidates, best first; ties keep category priority order."""
    keep = scope_filter(graph, scope) if scope else None
    candidates: List[MatchCandidate] = []
    for node_id, node in graph.iter_nodes():
        if keep is not None and not keep(node_id, node):
            continue
        candidate = match_node(node_id, node, query)
        if candidate is not None:
            candidates.append(candidate)
    candidates.sort(key=lambda c: c.score, reverse=True)
    return candidates


def best_match(graph: KnowledgeGraph, query: str, scope: Optional[str] = None) -> BestMatch:
    """Pick the single best node for *query*.

    Args:
        graph: Graph to search.
        query: Free text; matching is case-insensitive.
        scope: Optional folder ID restricting candidates to its subtree.

    Returns:
        A :class:`BestMatch`; ``match`` is ``None`` when nothing matched.
        When confidence is below :data:`CONFIDENCE_THRESHOLD`, up to
        :data:`MAX_ALTERNATIVES` runner-ups are attached.
    """
    candidates = rank_candidates(graph, query, scope)
    if not candidates:
        logger.debug("No candidates for %r", query)
        return BestMatch(query=query, match=None, confidence=0.0)

    winner = candidates[0]
    confidence = calculate_confidence(winner)
    alternatives: List[Alternative] = []
    if confidence < CONFIDENCE_THRESHOLD:
        alternatives = [_alternative(c) for c in candidates[1 : 1 + MAX_ALTERNATIVES]]

    logger.debug(
        "Best match for %r: %s (score=%d, confidence=%.2f, fields=%s)",
        query, winner.id, winner.score, confidence, ",".join(winner.matched_fields),
    )
    return BestMatch(query=query, match=winner, confidence=confidence, alternatives=alternatives)


# ===================================================================
# Fuzzy search
# ===================================================================


def _query_variants(query: str) -> Tuple[List[str], List[str]]:
    """Return (patterns to fuzzy-match, words for the exact-substring boost)."""
    term = query.strip().lower()
    words = [w for w in _split_words(term) if len(w) >= MIN_WORD_LENGTH]
    if len(words) > 1:
        return [term] + words, words
    if len(term) >= MIN_WORD_LENGTH:
        return [term], [term]
    return [], []


def _field_similarity(patterns: Sequence[str], text: str) -> float:
    if not text:
        return 0.0
    return max(fuzz.partial_ratio(p, text) for p in patterns) / 100.0


def fuzzy_rank(
    rows: Iterable[Tuple[T, Dict[str, str]]],
    keys: Sequence[Tuple[str, float]],
    query: str,
) -> List[Tuple[T, float]]:
    """Rank rows of searchable text fields against *query*.

    A field counts when its similarity reaches :data:`MIN_SIMILARITY`.
    Per-row distance is the product of ``(1 - similarity) ** weight`` over
    counted fields, halved when any query word occurs verbatim.

    Returns:
        ``(item, distance)`` pairs sorted best first; distance is in
        ``[0, 1]`` and lower is better.
    """
    patterns, words = _query_variants(query)
    if not patterns:
        return []

    ranked: List[Tuple[T, float]] = []
    for item, fields in rows:
        lowered = {name: (fields.get(name) or "").lower() for name, _ in keys}
        distance = 1.0
        counted = False
        for name, weight in keys:
            similarity = _field_similarity(patterns, lowered[name])
            if similarity < MIN_SIMILARITY:
                continue
            counted = True
            distance *= max(1.0 - similarity, _EPSILON) ** weight
        if not counted:
            continue
        if any(word in text for word in words for text in lowered.values()):
            distance *= EXACT_HIT_FACTOR
        ranked.append((item, distance))

    ranked.sort(key=lambda pair: pair[1])
    return ranked


def _search_content(children: Dict[str, List[str]], node_id: str, node: AnyNode) -> str:
    """Extra text for deep matching: doc text, or the names of structural members."""
    if isinstance(node, DocNode):
        return node.content
    return " ".join(children.get(node_id, []))


def search(graph: KnowledgeGraph, query: str, limit: int = 10) -> List[SearchResult]:
    """Approximate search across every node; top *limit* results by score."""
    children = build_child_index(graph.edges)
    rows: List[Tuple[Tuple[str, AnyNode], Dict[str, str]]] = []
    for node_id, node in graph.iter_nodes():
        rows.append(
            (
                (node_id, node),
                {
                    "id": node_id,
                    "desc": node.desc,
                    "path": node.location or "",
                    "content": _search_content(children, node_id, node),
                },
            )
        )
    logger.debug("%d searchable nodes indexed", len(rows))

    ranked = fuzzy_rank(rows, SEARCH_KEYS, query)
    results: List[SearchResult] = []
    for (node_id, node), distance in ranked[:limit]:
        results.append(
            SearchResult(
                node_id=node_id,
                node_type=node.node_type,
                desc=node.desc,
                path=node.location or "",
                score=round(1.0 - distance, 2),
                priority=node.priority if isinstance(node, DocNode) else None,
            )
        )
    logger.debug("%d raw matches, returning top %d", len(ranked), len(results))
    return results


def list_docs(graph: KnowledgeGraph) -> List[DocRef]:
    """Every doc, constraints first, then essential, then supplementary."""
    docs = [
        DocRef(node_id=doc_id, explains=doc.explains, file_path=doc.file_path, priority=doc.priority)
        for doc_id, doc in graph.docs.items()
    ]
    docs.sort(key=lambda d: priority_rank(d.priority))
    return docs


def search_docs(graph: KnowledgeGraph, query: Optional[str] = None) -> List[SearchResult]:
    """Fuzzy search restricted to docs; essential docs get a ranking boost.

    Without a query every doc is returned in priority order, unscored.
    """
    if not query or not query.strip():
        return [
            SearchResult(
                node_id=ref.node_id,
                node_type="doc",
                desc=ref.explains,
                path=ref.file_path,
                score=None,
                priority=ref.priority,
            )
            for ref in list_docs(graph)
        ]

    rows = [
        (
            doc,
            {
                "id": doc_id,
                "explains": doc.explains,
                "content": doc.content,
                "filePath": doc.file_path,
            },
        )
        for doc_id, doc in graph.docs.items()
    ]
    ranked = []
    for doc, distance in fuzzy_rank(rows, DOC_SEARCH_KEYS, query):
        if doc.priority == "essential":
            distance *= ESSENTIAL_DOC_FACTOR
        ranked.append((doc, distance))
    ranked.sort(key=lambda pair: pair[1])

    results = [
        SearchResult(
            node_id=doc.id,
            node_type=doc.node_type,
            desc=doc.explains,
            path=doc.file_path,
            score=round(1.0 - distance, 2),
            priority=doc.priority,
        )
        for doc, distance in ranked
    ]
    return [r for r in results if r.score > MIN_DOC_SCORE]
