"""Tests for scene graph storage and SE3 transforms."""

import numpy as np
import pytest

from dsg_lcd.graph import SE3, DsgLayers, DynamicSceneGraph, NodeSymbol, SceneGraphLayer, node_label


class TestNodeSymbol:
    """Test suite for NodeSymbol."""

    def test_round_trip(self):
        """Test encoding and decoding a symbol."""
        symbol = NodeSymbol("O", 12)

        assert NodeSymbol.from_id(symbol.id) == symbol
        assert symbol.label == "O12"
        assert int(symbol) == symbol.id

    def test_categories_do_not_collide(self):
        """Test that equal indices of different categories differ."""
        assert NodeSymbol("O", 1).id != NodeSymbol("p", 1).id

    def test_node_label_plain_ids(self):
        """Test that small integer ids render as numbers."""
        assert node_label(42) == "42"
        assert node_label(NodeSymbol("p", 7).id) == "p7"

    def test_invalid_category(self):
        """Test that multi-character categories are rejected."""
        with pytest.raises(ValueError, match="single character"):
            NodeSymbol("Ob", 1)


class TestSceneGraphLayer:
    """Test suite for SceneGraphLayer."""

    def test_stale_lookup_returns_none(self):
        """Test that missing ids resolve to None instead of raising."""
        layer = SceneGraphLayer(DsgLayers.OBJECTS)
        layer.add_node(1, [1.0, 2.0, 3.0], semantic_label=4)

        assert layer.get_node(1).attributes.semantic_label == 4
        assert layer.get_node(2) is None
        assert 1 in layer and 2 not in layer

    def test_get_position(self):
        """Test reading positions and the error for missing nodes."""
        layer = SceneGraphLayer(DsgLayers.OBJECTS)
        layer.add_node(1, [1.0, 2.0, 3.0])

        np.testing.assert_allclose(layer.get_position(1), [1.0, 2.0, 3.0])
        with pytest.raises(KeyError):
            layer.get_position(5)

    def test_remove_node(self):
        """Test node removal."""
        layer = SceneGraphLayer(DsgLayers.PLACES)
        layer.add_node(1, np.zeros(3))

        assert layer.remove_node(1)
        assert not layer.remove_node(1)
        assert len(layer) == 0

    def test_invalid_position(self):
        """Test that positions must be 3D."""
        layer = SceneGraphLayer(DsgLayers.PLACES)

        with pytest.raises(ValueError, match="Position must be"):
            layer.add_node(1, [1.0, 2.0])


class TestDynamicSceneGraph:
    """Test suite for DynamicSceneGraph."""

    def test_default_layers(self):
        """Test that every hierarchy layer is created."""
        dsg = DynamicSceneGraph.with_default_layers()

        for layer_id in (DsgLayers.OBJECTS, DsgLayers.PLACES, DsgLayers.AGENTS):
            assert dsg.has_layer(layer_id)
        assert dsg.num_nodes == 0

    def test_add_and_find_node(self):
        """Test adding nodes and finding them across layers."""
        dsg = DynamicSceneGraph()
        dsg.add_node(DsgLayers.ROOMS, 7, [0.0, 1.0, 0.0])

        assert dsg.get_layer(DsgLayers.ROOMS) is not None
        assert dsg.get_node(7).layer == DsgLayers.ROOMS
        assert dsg.remove_node(7)
        assert dsg.get_node(7) is None

    def test_agent_pose(self):
        """Test that agent nodes expose their world pose."""
        dsg = DynamicSceneGraph()
        rotation = SE3.from_rvec_tvec(np.array([0.0, 0.2, 0.0]), np.zeros(3)).rotation
        node = dsg.add_node(DsgLayers.AGENTS, 1, [1.0, 0.0, 0.0], orientation=rotation)

        pose = node.attributes.world_T_node
        np.testing.assert_allclose(pose.rotation, rotation)
        np.testing.assert_allclose(pose.translation, [1.0, 0.0, 0.0])


class TestSE3:
    """Test suite for SE3."""

    def test_inverse_compose_is_identity(self):
        """Test T^-1 @ T == I."""
        T = SE3.from_rvec_tvec(np.array([0.1, 0.2, 0.3]), np.array([1.0, -1.0, 2.0]))

        assert (T.inverse() @ T).is_close(SE3.identity())

    def test_matrix_round_trip(self):
        """Test conversion to and from a 4x4 matrix."""
        T = SE3.from_rvec_tvec(np.array([0.0, 0.4, 0.0]), np.array([0.5, 0.0, 0.0]))

        assert SE3.from_matrix(T.to_matrix()).is_close(T)

    def test_transform_points(self):
        """Test that batch and single point transforms agree."""
        T = SE3.from_rvec_tvec(np.array([0.0, 0.0, np.pi / 2]), np.array([1.0, 0.0, 0.0]))
        points = np.array([[1.0, 0.0, 0.0], [0.0, 2.0, 0.0]])

        transformed = T.transform_points(points)

        np.testing.assert_allclose(transformed[0], [1.0, 1.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(transformed[1], T.transform_point(points[1]))

    def test_invalid_shapes(self):
        """Test shape validation."""
        with pytest.raises(ValueError, match="Rotation must be 3x3"):
            SE3(rotation=np.eye(2), translation=np.zeros(3))
        with pytest.raises(ValueError, match="Transform must be 4x4"):
            SE3.from_matrix(np.eye(3))
