import unittest

import layout
from graph import Edge, Graph, NodeType, PortSide


def _titles(graph: Graph, node_type: str) -> list[str]:
    return sorted(n.title for n in graph.nodes if n.type == node_type)


class TestAddNode(unittest.TestCase):
    def test_index_is_dense_rank_per_type(self):
        graph = Graph()
        cap0 = graph.add_node("vcap")
        proc0 = graph.add_node("vproc")
        cap1 = graph.add_node("vcap")

        self.assertEqual(cap0.title, "vcap@0")
        self.assertEqual(proc0.title, "vproc@0")
        self.assertEqual(cap1.title, "vcap@1")

    def test_accepts_node_type_enum(self):
        graph = Graph()
        node = graph.add_node(NodeType.ENCODER)

        self.assertEqual(node.type, "venc")
        self.assertIs(type(node.type), str)
        self.assertEqual(node.title, "venc@0")

    def test_new_node_has_default_geometry(self):
        graph = Graph()
        node = graph.add_node("vcap", x=15, y=25)

        self.assertEqual((node.x, node.y), (15, 25))
        self.assertEqual(node.width, layout.NODE_WIDTH)
        self.assertEqual(node.height, layout.NODE_MIN_HEIGHT)
        self.assertEqual(node.inputs, [])
        self.assertEqual(node.outputs, [])

    def test_invalid_types_raise_error(self):
        graph = Graph()
        for node_type in ["", "v cap", "vcap@1", "a:b", "{x}"]:
            with self.subTest(node_type=node_type):
                with self.assertRaises(ValueError):
                    graph.add_node(node_type)
        self.assertEqual(graph.nodes, [])

    def test_ids_are_scoped_to_graph_instance(self):
        first = Graph()
        second = Graph()

        self.assertEqual(first.add_node("vcap").id, "node_1")
        self.assertEqual(first.add_node("vcap").id, "node_2")
        self.assertEqual(second.add_node("vcap").id, "node_1")

    def test_next_index_follows_current_nodes_after_deletion(self):
        graph = Graph()
        graph.add_node("vproc")
        middle = graph.add_node("vproc")
        graph.add_node("vproc")

        graph.remove_node(middle.id)
        added = graph.add_node("vproc")

        self.assertEqual(added.title, "vproc@2")
        self.assertEqual(_titles(graph, "vproc"), ["vproc@0", "vproc@1", "vproc@2"])


class TestPorts(unittest.TestCase):
    def setUp(self):
        self.graph = Graph()
        self.node = self.graph.add_node("vproc")

    def test_add_port_appends_to_side(self):
        in0 = self.graph.add_port(self.node.id, PortSide.LEFT)
        out0 = self.graph.add_port(self.node.id, PortSide.RIGHT)
        in1 = self.graph.add_port(self.node.id, "left")

        self.assertEqual(self.node.inputs, [in0.id, in1.id])
        self.assertEqual(self.node.outputs, [out0.id])
        self.assertEqual(in1.side, PortSide.LEFT)
        self.assertEqual(in1.node_id, self.node.id)
        self.assertEqual(self.graph.port_index(in1.id), 1)
        self.assertEqual(self.graph.port_index(out0.id), 0)

    def test_node_ports_returns_live_sequence(self):
        in0 = self.graph.add_port(self.node.id, PortSide.LEFT)
        in1 = self.graph.add_port(self.node.id, PortSide.LEFT)

        self.assertEqual(
            [p.id for p in self.graph.node_ports(self.node.id, PortSide.LEFT)],
            [in0.id, in1.id],
        )
        self.assertEqual(self.graph.node_ports(self.node.id, PortSide.RIGHT), [])

    def test_height_grows_with_port_count(self):
        for _ in range(5):
            self.graph.add_port(self.node.id, PortSide.LEFT)

        expected = (
            layout.PORT_TOP_OFFSET
            + 5 * layout.PORT_SPACING
            + layout.PORT_BOTTOM_MARGIN
        )
        self.assertEqual(self.node.height, max(layout.NODE_MIN_HEIGHT, expected))

        for port_id in list(self.node.inputs):
            self.graph.remove_port(port_id)
        self.assertEqual(self.node.height, layout.NODE_MIN_HEIGHT)

    def test_add_port_to_unknown_node_raises_error(self):
        with self.assertRaises(ValueError):
            self.graph.add_port("node_404", PortSide.LEFT)

    def test_add_port_with_invalid_side_raises_error(self):
        with self.assertRaises(ValueError):
            self.graph.add_port(self.node.id, "up")

    def test_remove_port_reindexes_siblings_and_drops_edges(self):
        other = self.graph.add_node("vout")
        out0 = self.graph.add_port(self.node.id, PortSide.RIGHT)
        out1 = self.graph.add_port(self.node.id, PortSide.RIGHT)
        dst = self.graph.add_port(other.id, PortSide.LEFT)
        self.graph.create_edge(out0.id, dst.id)
        kept = self.graph.create_edge(out1.id, self.graph.add_port(other.id, "left").id)

        self.assertTrue(self.graph.remove_port(out0.id))

        self.assertIsNone(self.graph.get_port(out0.id))
        self.assertEqual(self.graph.port_index(out1.id), 0)
        self.assertEqual([e.id for e in self.graph.edges], [kept.id])

    def test_remove_unknown_port_is_noop(self):
        self.assertFalse(self.graph.remove_port("port_404"))

    def test_port_index_of_unknown_port_raises_error(self):
        with self.assertRaises(ValueError):
            self.graph.port_index("port_404")

    def test_port_position(self):
        self.graph.move_node(self.node.id, 10, 20)
        self.graph.add_port(self.node.id, PortSide.LEFT)
        in1 = self.graph.add_port(self.node.id, PortSide.LEFT)
        out0 = self.graph.add_port(self.node.id, PortSide.RIGHT)

        self.assertEqual(
            self.graph.port_position(in1.id),
            (10, 20 + layout.PORT_TOP_OFFSET + layout.PORT_SPACING),
        )
        self.assertEqual(
            self.graph.port_position(out0.id),
            (10 + layout.NODE_WIDTH, 20 + layout.PORT_TOP_OFFSET),
        )


class TestRemoveNode(unittest.TestCase):
    def test_renumbers_only_same_type_with_higher_index(self):
        graph = Graph()
        proc0 = graph.add_node("vproc")
        proc1 = graph.add_node("vproc")
        proc2 = graph.add_node("vproc")
        cap0 = graph.add_node("vcap")
        cap1 = graph.add_node("vcap")

        self.assertTrue(graph.remove_node(proc1.id))

        self.assertEqual(proc0.title, "vproc@0")
        self.assertEqual(proc2.title, "vproc@1")
        self.assertEqual(cap0.title, "vcap@0")
        self.assertEqual(cap1.title, "vcap@1")
        self.assertIsNone(graph.get_node(proc1.id))

    def test_cascades_to_ports_and_edges(self):
        graph = Graph()
        cap = graph.add_node("vcap")
        proc = graph.add_node("vproc")
        out = graph.add_node("vout")
        cap_out = graph.add_port(cap.id, PortSide.RIGHT)
        proc_in = graph.add_port(proc.id, PortSide.LEFT)
        proc_out = graph.add_port(proc.id, PortSide.RIGHT)
        out_in = graph.add_port(out.id, PortSide.LEFT)
        graph.create_edge(cap_out.id, proc_in.id)
        graph.create_edge(proc_in.id, proc_out.id)
        graph.create_edge(proc_out.id, out_in.id)

        graph.remove_node(proc.id)

        self.assertEqual({p.id for p in graph.ports}, {cap_out.id, out_in.id})
        self.assertEqual(graph.edges, [])
        self.assertEqual(len(graph.nodes), 2)

    def test_titles_stay_dense_after_repeated_deletions(self):
        graph = Graph()
        nodes = [graph.add_node("venc") for _ in range(6)]
        for node in (nodes[3], nodes[0], nodes[5]):
            graph.remove_node(node.id)

            indices = sorted(n.index for n in graph.nodes if n.type == "venc")
            self.assertEqual(indices, list(range(len(indices))))

        self.assertEqual(_titles(graph, "venc"), ["venc@0", "venc@1", "venc@2"])

    def test_remove_unknown_node_is_noop(self):
        graph = Graph()
        graph.add_node("vcap")

        self.assertFalse(graph.remove_node("node_404"))
        self.assertEqual(len(graph.nodes), 1)


class TestCreateEdge(unittest.TestCase):
    def setUp(self):
        self.graph = Graph()
        self.src = self.graph.add_node("vcap")
        self.dst = self.graph.add_node("vproc")
        self.src_out = self.graph.add_port(self.src.id, PortSide.RIGHT)
        self.src_out2 = self.graph.add_port(self.src.id, PortSide.RIGHT)
        self.dst_in = self.graph.add_port(self.dst.id, PortSide.LEFT)
        self.dst_in2 = self.graph.add_port(self.dst.id, PortSide.LEFT)

    def test_edge_runs_from_output_to_input(self):
        edge = self.graph.create_edge(self.dst_in.id, self.src_out.id)

        self.assertEqual(edge.from_port, self.src_out.id)
        self.assertEqual(edge.to_port, self.dst_in.id)
        self.assertEqual(self.graph.edges, [edge])

    def test_same_side_is_rejected(self):
        self.assertIsNone(self.graph.create_edge(self.src_out.id, self.src_out2.id))
        self.assertIsNone(self.graph.create_edge(self.dst_in.id, self.dst_in2.id))
        self.assertEqual(self.graph.edges, [])

    def test_duplicate_pair_is_rejected_in_either_order(self):
        first = self.graph.create_edge(self.src_out.id, self.dst_in.id)

        self.assertIsNone(self.graph.create_edge(self.src_out.id, self.dst_in.id))
        self.assertIsNone(self.graph.create_edge(self.dst_in.id, self.src_out.id))
        self.assertEqual(self.graph.edges, [first])

    def test_unknown_port_is_rejected(self):
        self.assertIsNone(self.graph.create_edge(self.src_out.id, "port_404"))
        self.assertEqual(self.graph.edges, [])

    def test_one_port_may_have_several_edges(self):
        self.graph.create_edge(self.src_out.id, self.dst_in.id)
        self.graph.create_edge(self.src_out.id, self.dst_in2.id)

        self.assertEqual(len(self.graph.edges), 2)

    def test_internal_edge_classification(self):
        proc_out = self.graph.add_port(self.dst.id, PortSide.RIGHT)
        internal = self.graph.create_edge(self.dst_in.id, proc_out.id)
        bind = self.graph.create_edge(self.src_out.id, self.dst_in.id)

        self.assertTrue(self.graph.is_internal_edge(internal))
        self.assertFalse(self.graph.is_internal_edge(bind))
        self.assertEqual(list(self.graph.internal_edges(self.dst.id)), [internal])
        self.assertEqual(list(self.graph.internal_edges(self.src.id)), [])

    def test_remove_edge(self):
        edge = self.graph.create_edge(self.src_out.id, self.dst_in.id)

        self.assertTrue(self.graph.remove_edge(edge.id))
        self.assertFalse(self.graph.remove_edge(edge.id))
        self.assertEqual(self.graph.edges, [])
        # Removing the edge leaves the ports in place.
        self.assertIsNotNone(self.graph.get_port(self.src_out.id))


class TestMoveAndClear(unittest.TestCase):
    def test_move_node_changes_geometry_only(self):
        graph = Graph()
        node = graph.add_node("vdec")
        graph.add_port(node.id, PortSide.LEFT)

        moved = graph.move_node(node.id, 300, 400)

        self.assertIs(moved, node)
        self.assertEqual((node.x, node.y), (300, 400))
        self.assertEqual(node.title, "vdec@0")
        self.assertEqual(len(node.inputs), 1)

    def test_move_unknown_node_raises_error(self):
        with self.assertRaises(ValueError):
            Graph().move_node("node_404", 0, 0)

    def test_clear(self):
        graph = Graph()
        node = graph.add_node("vcap")
        graph.add_port(node.id, PortSide.RIGHT)

        graph.clear()

        self.assertEqual((graph.nodes, graph.ports, graph.edges), ([], [], []))

    def test_find_node_by_title(self):
        graph = Graph()
        graph.add_node("vcap")
        second = graph.add_node("vcap")

        self.assertIs(graph.find_node_by_title("vcap@1"), second)
        self.assertIsNone(graph.find_node_by_title("vcap@2"))


class TestToFromDict(unittest.TestCase):
    def _sample(self) -> Graph:
        graph = Graph()
        cap = graph.add_node("vcap", x=5, y=6)
        proc = graph.add_node("vproc")
        out = graph.add_port(cap.id, PortSide.RIGHT)
        inp = graph.add_port(proc.id, PortSide.LEFT)
        graph.create_edge(out.id, inp.id)
        return graph

    def test_to_dict(self):
        d = self._sample().to_dict()

        self.assertEqual(
            d["nodes"][0],
            {
                "id": "node_1",
                "type": "vcap",
                "index": 0,
                "title": "vcap@0",
                "inputs": [],
                "outputs": ["port_1"],
                "x": 5,
                "y": 6,
                "width": layout.NODE_WIDTH,
                "height": layout.NODE_MIN_HEIGHT,
            },
        )
        self.assertEqual(
            d["ports"],
            [
                {"id": "port_1", "node_id": "node_1", "side": "right"},
                {"id": "port_2", "node_id": "node_2", "side": "left"},
            ],
        )
        self.assertEqual(
            d["edges"], [{"id": "edge_1", "from_port": "port_1", "to_port": "port_2"}]
        )

    def test_to_from_dict(self):
        original = self._sample()
        restored = Graph.from_dict(original.to_dict())

        self.assertEqual(restored.to_dict(), original.to_dict())
        self.assertEqual(restored.edges, [Edge("edge_1", "port_1", "port_2")])

    def test_from_dict_continues_ids_without_collisions(self):
        restored = Graph.from_dict(self._sample().to_dict())

        self.assertEqual(restored.add_node("vout").id, "node_3")
        self.assertEqual(restored.add_port("node_1", PortSide.RIGHT).id, "port_3")

    def test_from_dict_compacts_indices(self):
        data = {
            "nodes": [
                {"id": "a", "type": "vproc", "index": 4},
                {"id": "b", "type": "vproc", "index": 1},
            ],
            "ports": [],
            "edges": [],
        }

        graph = Graph.from_dict(data)

        self.assertEqual(graph.get_node("b").title, "vproc@0")
        self.assertEqual(graph.get_node("a").title, "vproc@1")

    def test_from_dict_rejects_inconsistent_ports(self):
        data = {
            "nodes": [{"id": "a", "type": "vcap", "index": 0, "outputs": ["p1"]}],
            "ports": [{"id": "p1", "node_id": "a", "side": "left"}],
            "edges": [],
        }

        with self.assertRaises(ValueError):
            Graph.from_dict(data)

    def test_from_dict_rejects_edges_to_unknown_ports(self):
        data = {
            "nodes": [],
            "ports": [],
            "edges": [{"id": "e1", "from_port": "p1", "to_port": "p2"}],
        }

        with self.assertRaises(ValueError):
            Graph.from_dict(data)

    def _one_node(self, edges: list[dict]) -> dict:
        return {
            "nodes": [
                {
                    "id": "n",
                    "type": "vproc",
                    "index": 0,
                    "inputs": ["i0", "i1"],
                    "outputs": ["o0"],
                }
            ],
            "ports": [
                {"id": "i0", "node_id": "n", "side": "left"},
                {"id": "i1", "node_id": "n", "side": "left"},
                {"id": "o0", "node_id": "n", "side": "right"},
            ],
            "edges": edges,
        }

    def test_from_dict_stores_edges_output_to_input(self):
        graph = Graph.from_dict(
            self._one_node([{"id": "e", "from_port": "i1", "to_port": "o0"}])
        )

        self.assertEqual(graph.edges, [Edge("e", "o0", "i1")])
        self.assertEqual(
            graph.to_pipeline_description("stored"),
            "{\nvproc@0 : {\n  1 -> 0\n},\nbind : {\n}\n}",
        )

    def test_from_dict_rejects_same_side_edges(self):
        data = self._one_node([{"id": "e", "from_port": "i0", "to_port": "i1"}])

        with self.assertRaises(ValueError):
            Graph.from_dict(data)

    def test_from_dict_rejects_duplicate_pairs(self):
        data = self._one_node(
            [
                {"id": "e1", "from_port": "o0", "to_port": "i0"},
                {"id": "e2", "from_port": "i0", "to_port": "o0"},
            ]
        )

        with self.assertRaises(ValueError):
            Graph.from_dict(data)

    def test_from_dict_rejects_malformed_types(self):
        for node_type in ["", "a b", "x@1", "a:b"]:
            with self.subTest(node_type=node_type):
                data = {
                    "nodes": [{"id": "a", "type": node_type, "index": 0}],
                    "ports": [],
                    "edges": [],
                }
                with self.assertRaises(ValueError):
                    Graph.from_dict(data)


if __name__ == "__main__":
    unittest.main()
