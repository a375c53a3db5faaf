"""
Adventure graph derivation.

Turns an adventure pack into a directed node/edge graph for visualization
and consistency checks. Edges come from explicit ``links`` plus the
relationship fields of each entity kind.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from .gates import extract_gate_references
from .models import AdventurePack, CamlEntity, Location, Quest

logger = logging.getLogger("caml-protocol")

LABEL_TRIGGERS = "triggers"
LABEL_CONTAINS = "contains"
LABEL_GIVES = "gives"
LABEL_UNLOCKS = "unlocks"


class GraphNode(BaseModel):
    """One entity in the adventure graph."""
    id: str
    type: str
    name: str


class GraphEdge(BaseModel):
    """A directed relationship between two entity ids."""
    source: str
    target: str
    label: str | None = None


class AdventureGraph(BaseModel):
    """Nodes and edges derived from an adventure pack."""
    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Wire form: ``{nodes: [...], edges: [...]}``, unlabeled edges without ``label``."""
        return {
            "nodes": [node.model_dump() for node in self.nodes],
            "edges": [edge.model_dump(exclude_none=True) for edge in self.edges],
        }

    def dangling_edges(self, pack: AdventurePack) -> list[GraphEdge]:
        """Edges whose source or target is not an indexed entity."""
        return [
            edge for edge in self.edges
            if edge.source not in pack.entities or edge.target not in pack.entities
        ]

    def edges_from(self, entity_id: str) -> list[GraphEdge]:
        """Outgoing edges of an entity."""
        return [edge for edge in self.edges if edge.source == entity_id]

    def edges_to(self, entity_id: str) -> list[GraphEdge]:
        """Incoming edges of an entity."""
        return [edge for edge in self.edges if edge.target == entity_id]


def _entity_edges(entity: CamlEntity) -> list[GraphEdge]:
    edges = [GraphEdge(source=entity.id, target=link) for link in entity.links or []]

    if isinstance(entity, Location):
        for connection in entity.connections or []:
            if not connection.target:
                continue
            edges.append(GraphEdge(
                source=entity.id, target=connection.target, label=connection.direction,
            ))
        for encounter_id in entity.encounters or []:
            edges.append(GraphEdge(source=entity.id, target=encounter_id, label=LABEL_TRIGGERS))
        for npc_id in entity.npcs or []:
            edges.append(GraphEdge(source=entity.id, target=npc_id, label=LABEL_CONTAINS))

    # Reversed: giver -> quest.
    if isinstance(entity, Quest) and entity.quest_giver:
        edges.append(GraphEdge(source=entity.quest_giver, target=entity.id, label=LABEL_GIVES))

    if entity.gates is not None:
        for reference in extract_gate_references(entity.gates):
            edges.append(GraphEdge(source=reference, target=entity.id, label=LABEL_UNLOCKS))

    return edges


def build_adventure_graph(pack: AdventurePack) -> AdventureGraph:
    """Derive the node/edge graph of an adventure.

    Nodes follow the entity index order, so the result is deterministic for
    a given pack. Edges are not deduplicated and may point at ids outside
    the index (see :meth:`AdventureGraph.dangling_edges`).

    Args:
        pack: Parsed adventure pack.

    Returns:
        The adventure graph.
    """
    graph = AdventureGraph()
    for entity_id, entity in pack.entities.items():
        graph.nodes.append(GraphNode(id=entity_id, type=entity.type, name=entity.name or entity_id))
        graph.edges.extend(_entity_edges(entity))

    logger.debug(
        f"Built graph for '{pack.adventure.id}': "
        f"{len(graph.nodes)} nodes, {len(graph.edges)} edges"
    )
    return graph


__all__ = [
    "LABEL_TRIGGERS",
    "LABEL_CONTAINS",
    "LABEL_GIVES",
    "LABEL_UNLOCKS",
    "GraphNode",
    "GraphEdge",
    "AdventureGraph",
    "build_adventure_graph",
]
