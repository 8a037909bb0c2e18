"""
Connection Finder

Relates a handful of saved items to each other through the tags they
share. Every pair is compared once; a pair with no shared tags is only
kept when contradictions are asked for.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from ..common.backend_client import BackendClient
from ..common.schemas.content import Content, ContentLink, LinkEndpoint

logger = logging.getLogger("curator.retriever.connection_finder")

STRONG_LINK_THRESHOLD = 2
MIN_ITEMS = 2


class ConnectionType(str, Enum):
    ALL = "all"
    CAUSAL = "causal"
    CONTRADICTORY = "contradictory"
    COMPLEMENTARY = "complementary"
    SEQUENTIAL = "sequential"


def find_connection(
    first: Content,
    second: Content,
    connection_type: Union[str, ConnectionType] = ConnectionType.ALL,
) -> Optional[ContentLink]:
    """Link two items through their shared tags, or None if they share none."""
    connection_type = ConnectionType(connection_type)
    tags1 = list(dict.fromkeys(first.tags))
    tags2 = set(second.tags)
    shared = [t for t in tags1 if t in tags2]

    if not shared and connection_type != ConnectionType.CONTRADICTORY:
        return None

    largest = max(len(tags1), len(tags2))
    return ContentLink(
        source1=LinkEndpoint(id=first.id, title=first.title or "Untitled"),
        source2=LinkEndpoint(id=second.id, title=second.title or "Untitled"),
        kind="strong" if len(shared) > STRONG_LINK_THRESHOLD else "weak",
        relationship="complementary" if shared else "independent",
        strength=len(shared) / largest if largest else 0.0,
        shared_concepts=shared,
        explanation=f"Share {len(shared)} common concepts",
    )


def analyze_connections(
    contents: Sequence[Content],
    connection_type: Union[str, ConnectionType] = ConnectionType.ALL,
) -> List[ContentLink]:
    links = []
    for i, first in enumerate(contents):
        for second in contents[i + 1:]:
            link = find_connection(first, second, connection_type)
            if link is not None:
                links.append(link)
    return links


def group_by_relationship(links: Sequence[ContentLink]) -> Dict[str, List[ContentLink]]:
    grouped: Dict[str, List[ContentLink]] = {}
    for link in links:
        grouped.setdefault(link.relationship or "unknown", []).append(link)
    return grouped


def network_stats(links: Sequence[ContentLink], contents: Sequence[Content]) -> Optional[Dict[str, Any]]:
    """
    Summarize the link network.

    Returns:
        mostConnected (title, connectionCount), centralTheme and density,
        or None when there are no links
    """
    if not links:
        return None

    counts: Counter = Counter()
    for link in links:
        counts[link.source1.id] += 1
        counts[link.source2.id] += 1
    top_id, top_count = counts.most_common(1)[0]
    top = next((c for c in contents if c.id == top_id), contents[0] if contents else None)

    return {
        "mostConnected": {
            "title": (top.title if top is not None else None) or "Unknown",
            "connectionCount": top_count,
        },
        "centralTheme": links[0].shared_concepts[0] if links[0].shared_concepts else "Unknown",
        "density": "High",
    }


@dataclass
class ConnectionAnalysis:
    """Result of relating a set of items"""
    connection_type: ConnectionType
    contents: List[Content] = field(default_factory=list)
    connections: List[ContentLink] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def network_stats(self) -> Optional[Dict[str, Any]]:
        return network_stats(self.connections, self.contents)

    @property
    def by_relationship(self) -> Dict[str, List[ContentLink]]:
        return group_by_relationship(self.connections)


class ConnectionFinder:
    """Fetches items in one batch and relates every pair."""

    def __init__(self, client: BackendClient):
        self._client = client

    async def find(
        self,
        content_ids: Sequence[str],
        connection_type: Union[str, ConnectionType] = ConnectionType.ALL,
    ) -> ConnectionAnalysis:
        """
        Raises:
            ValueError: fewer than two IDs were given
            BackendError: the batch fetch failed
        """
        if len(content_ids) < MIN_ITEMS:
            raise ValueError("At least 2 content IDs are required")
        connection_type = ConnectionType(connection_type)

        fetched = await self._client.batch_get_content(list(content_ids), include_content=False)
        analysis = ConnectionAnalysis(
            connection_type=connection_type,
            contents=fetched.items,
            errors=fetched.errors,
        )
        if len(fetched.items) < MIN_ITEMS:
            logger.info("Only %d of %d items found; nothing to connect", len(fetched.items), len(content_ids))
            return analysis

        analysis.connections = analyze_connections(fetched.items, connection_type)
        logger.info(
            "Found %d %s connections across %d items",
            len(analysis.connections), connection_type.value, len(fetched.items),
        )
        return analysis
