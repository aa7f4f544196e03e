"""Scene graph storage and rigid transforms.

Core components:
- SE3: Rigid body transformation used for registration results
- SceneGraphLayer / DynamicSceneGraph: Layered node storage
- NodeSymbol: Human-readable node ids
"""

from .pose import SE3
from .scene_graph import (
    DsgLayers,
    DynamicSceneGraph,
    LayerId,
    NodeAttributes,
    NodeId,
    NodeSymbol,
    SceneGraphLayer,
    SceneGraphNode,
    node_label,
)

__all__ = [
    # Pose
    "SE3",
    # Graph
    "DsgLayers",
    "DynamicSceneGraph",
    "LayerId",
    "NodeAttributes",
    "NodeId",
    "NodeSymbol",
    "SceneGraphLayer",
    "SceneGraphNode",
    "node_label",
]
