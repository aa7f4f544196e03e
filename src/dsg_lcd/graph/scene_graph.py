"""Hierarchical scene graph storage consumed by loop-closure registration.

The scene graph groups nodes into layers of increasing abstraction
(objects, places, rooms, buildings) plus an agent layer holding the
trajectory poses. Registration only ever reads from it:

- resolve a node id within a layer (stale ids resolve to ``None``)
- read a node's 3D position
- read a node's semantic label

Each layer carries a re-entrant lock. Writers (the map-building thread)
hold it while mutating; readers pass it to registration as a read-guard.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

import numpy as np

from .pose import SE3

NodeId = int
LayerId = int

_CHAR_BITS = 8
_INDEX_BITS = 64 - _CHAR_BITS
_INDEX_MASK = (1 << _INDEX_BITS) - 1


class DsgLayers:
    """Layer ids of the scene graph hierarchy."""

    OBJECTS: LayerId = 2
    PLACES: LayerId = 3
    ROOMS: LayerId = 4
    BUILDINGS: LayerId = 5
    AGENTS: LayerId = 6


@dataclass(frozen=True)
class NodeSymbol:
    """Human-readable node id: a category character plus an index.

    The character occupies the top byte of the integer id so that ids of
    different categories never collide, e.g. ``NodeSymbol("O", 12)`` is
    object 12 and renders as ``O12``.
    """

    category: str
    index: int

    def __post_init__(self) -> None:
        if len(self.category) != 1:
            raise ValueError(f"Category must be a single character, got {self.category!r}")
        if not 0 <= self.index <= _INDEX_MASK:
            raise ValueError(f"Index out of range: {self.index}")

    @classmethod
    def from_id(cls, node_id: NodeId) -> NodeSymbol:
        """Decode an integer node id."""
        return cls(chr(node_id >> _INDEX_BITS), node_id & _INDEX_MASK)

    @property
    def id(self) -> NodeId:
        """Integer node id."""
        return (ord(self.category) << _INDEX_BITS) | self.index

    @property
    def label(self) -> str:
        """Label used in log messages, e.g. ``O12``."""
        return f"{self.category}{self.index}"

    def __int__(self) -> int:
        return self.id


def node_label(node_id: NodeId) -> str:
    """Render a node id for logging, falling back to the raw integer."""
    if _INDEX_MASK < node_id < (1 << 64):
        return NodeSymbol.from_id(node_id).label
    return str(node_id)


@dataclass
class NodeAttributes:
    """Attributes attached to a scene graph node.

    Attributes:
        position: 3D position in the world frame
        semantic_label: Object class / category label, if known
        orientation: 3x3 world rotation (agent nodes only)
    """

    position: np.ndarray
    semantic_label: int | None = None
    orientation: np.ndarray | None = None

    def __post_init__(self) -> None:
        self.position = np.asarray(self.position, dtype=np.float64).flatten()
        if self.position.shape != (3,):
            raise ValueError(f"Position must be (3,), got {self.position.shape}")
        if self.orientation is not None:
            self.orientation = np.asarray(self.orientation, dtype=np.float64)
            if self.orientation.shape != (3, 3):
                raise ValueError(
                    f"Orientation must be 3x3, got {self.orientation.shape}"
                )

    @property
    def world_T_node(self) -> SE3:
        """Pose of the node in the world frame (identity rotation if unset)."""
        rotation = np.eye(3) if self.orientation is None else self.orientation
        return SE3(rotation=rotation, translation=self.position)


@dataclass
class SceneGraphNode:
    """A node of the scene graph."""

    id: NodeId
    layer: LayerId
    attributes: NodeAttributes

    @property
    def label(self) -> str:
        return node_label(self.id)


class SceneGraphLayer:
    """Single layer of the scene graph.

    Lookups never raise for missing ids: the graph is mutated concurrently
    and callers are expected to tolerate ids that went stale.
    """

    def __init__(self, layer_id: LayerId) -> None:
        """Initialize an empty layer.

        Args:
            layer_id: Id of this layer in the hierarchy
        """
        self.id = layer_id
        self._nodes: dict[NodeId, SceneGraphNode] = {}
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """Re-entrant lock guarding this layer's node storage."""
        return self._lock

    def add_node(
        self,
        node_id: NodeId,
        position: np.ndarray,
        semantic_label: int | None = None,
        orientation: np.ndarray | None = None,
    ) -> SceneGraphNode:
        """Add (or replace) a node.

        Args:
            node_id: Node id
            position: 3D world position
            semantic_label: Optional category label
            orientation: Optional 3x3 world rotation

        Returns:
            The stored node
        """
        node = SceneGraphNode(
            id=node_id,
            layer=self.id,
            attributes=NodeAttributes(
                position=position,
                semantic_label=semantic_label,
                orientation=orientation,
            ),
        )
        with self._lock:
            self._nodes[node_id] = node
        return node

    def remove_node(self, node_id: NodeId) -> bool:
        """Remove a node, returning whether it existed."""
        with self._lock:
            return self._nodes.pop(node_id, None) is not None

    def get_node(self, node_id: NodeId) -> SceneGraphNode | None:
        return self._nodes.get(node_id)

    def has_node(self, node_id: NodeId) -> bool:
        return node_id in self._nodes

    def get_position(self, node_id: NodeId) -> np.ndarray:
        """Return the position of a node.

        Raises:
            KeyError: If the node is not in the layer
        """
        node = self._nodes.get(node_id)
        if node is None:
            raise KeyError(f"Node {node_label(node_id)} not in layer {self.id}")
        return node.attributes.position.copy()

    @property
    def node_ids(self) -> list[NodeId]:
        with self._lock:
            return list(self._nodes)

    @property
    def num_nodes(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: NodeId) -> bool:
        return self.has_node(node_id)

    def __len__(self) -> int:
        return len(self._nodes)


@dataclass
class DynamicSceneGraph:
    """Layered scene graph with a dedicated agent (trajectory) layer."""

    layers: dict[LayerId, SceneGraphLayer] = field(default_factory=dict)

    @classmethod
    def with_default_layers(cls) -> DynamicSceneGraph:
        """Create a graph holding every layer in ``DsgLayers``."""
        layer_ids = [
            DsgLayers.OBJECTS,
            DsgLayers.PLACES,
            DsgLayers.ROOMS,
            DsgLayers.BUILDINGS,
            DsgLayers.AGENTS,
        ]
        return cls(layers={layer_id: SceneGraphLayer(layer_id) for layer_id in layer_ids})

    def get_layer(self, layer_id: LayerId) -> SceneGraphLayer | None:
        return self.layers.get(layer_id)

    def has_layer(self, layer_id: LayerId) -> bool:
        return layer_id in self.layers

    def add_node(
        self,
        layer_id: LayerId,
        node_id: NodeId,
        position: np.ndarray,
        semantic_label: int | None = None,
        orientation: np.ndarray | None = None,
    ) -> SceneGraphNode:
        """Add a node to a layer, creating the layer if needed."""
        layer = self.layers.setdefault(layer_id, SceneGraphLayer(layer_id))
        return layer.add_node(node_id, position, semantic_label, orientation)

    def get_node(self, node_id: NodeId) -> SceneGraphNode | None:
        """Find a node in any layer."""
        for layer in self.layers.values():
            node = layer.get_node(node_id)
            if node is not None:
                return node
        return None

    def remove_node(self, node_id: NodeId) -> bool:
        """Remove a node from whichever layer holds it."""
        for layer in self.layers.values():
            if layer.remove_node(node_id):
                return True
        return False

    @property
    def num_nodes(self) -> int:
        return sum(len(layer) for layer in self.layers.values())
