"""
Tests for TreeNodes queries, traversal and bulk operations.
"""

import pytest

from treestatelib import STOP, InvalidStateError, Tree, TreeNodes
from treestatelib.testing import node_ids as ids


class TestTraversal:
    """recurse_down and lookups."""

    def test_recurse_down_pre_order(self, tree):
        seen = []
        tree.recurse_down(lambda node: seen.append(node.id))
        assert seen == ['1', '2', '3', '4', '5', '6', '7']

    def test_recurse_down_stop(self, tree):
        """Returning STOP halts the whole walk, including outer levels."""
        seen = []

        def visit(node):
            seen.append(node.id)
            if node.id == '3':
                return STOP

        tree.recurse_down(visit)
        assert seen == ['1', '2', '3']

    def test_node_lookup_is_tree_wide(self, tree):
        assert tree.node(6).text == 'F'
        assert tree.node('missing') is None

    def test_nodes_by_ids(self, tree):
        assert ids(tree.nodes([6, 2])) == ['2', '6']
        assert tree.nodes() is tree.model

    def test_deepest(self, tree):
        assert ids(tree.deepest()) == ['2', '3', '6', '7']

    def test_sequence_protocol(self, tree):
        assert len(tree) == 3
        assert ids(tree) == ['1', '4', '7']
        assert tree.get(1) is tree.node(4)
        assert tree.get(10) is None
        assert ids(tree.model[1:]) == ['4', '7']
        assert tree.node(4) in tree.model
        assert tree.model.index(tree.node(7)) == 2

    def test_concat_and_to_list(self, tree):
        combined = tree.model.concat(tree.node(1).children)
        assert ids(combined) == ['1', '4', '7', '2', '3']
        assert isinstance(combined.to_list(), list)


class TestQueries:
    """State queries, filter, flatten and extract."""

    def test_flatten_by_state(self, expanded_tree):
        assert ids(expanded_tree.flatten('expanded')) == ['1', '4', '5']
        assert ids(expanded_tree.collapsed()) == ['2', '3', '6', '7']

    def test_flatten_by_predicate(self, tree):
        assert ids(tree.flatten(lambda node: node.text in ('B', 'F'))) == ['2', '6']

    def test_filter_keeps_top_level_ancestors(self, tree):
        """filter returns live nodes of this level that lead to a match."""
        tree.node(6).state('hidden', True)

        result = tree.filter('hidden')

        assert ids(result) == ['4']
        assert result[0] is tree.node(4)

    def test_extract_clones_hierarchy(self, tree):
        tree.node(6).state('hidden', True)
        tree.node(3).state('hidden', True)

        result = tree.extract('hidden')

        assert ids(result) == ['1', '4']
        assert ids(result[0].children) == ['3']
        assert ids(result[1].children[0].children) == ['6']
        assert result[1] is not tree.node(4)

    def test_extract_is_detached(self, tree):
        tree.node(2).state('hidden', True)
        clone = tree.extract('hidden')[0].children[0]

        clone.state('hidden', False)

        assert tree.node(2).hidden()

    def test_full_query(self, tree):
        tree.node(5).state('focused', True)
        result = tree.focused(full=True)

        assert ids(result) == ['4']
        assert ids(result[0].children) == ['5']
        assert result[0].children[0].children is None

    def test_queries_skip_removed(self, tree):
        tree.node(7).state('hidden', True)
        tree.node(7).soft_remove()

        assert len(tree.hidden()) == 0
        assert ids(tree.removed()) == ['7']

    def test_derived_predicates(self, tree):
        assert ids(tree.visible()) == ['1', '4', '7']
        assert len(tree.available()) == 7

    def test_bad_predicates(self, tree):
        with pytest.raises(InvalidStateError):
            tree.flatten('sparkly')

        with pytest.raises(TypeError):
            tree.flatten(42)

    def test_views_do_not_reparent(self, tree):
        view = tree.flatten('collapsed')
        assert tree.node(2) in view
        assert tree.node(2).parent is tree.node(1)
        assert tree.node(2).context is tree.node(1).children


class TestBulkOperations:
    """State and invoke fan-out."""

    def test_state_shallow_and_deep(self, tree):
        assert tree.state('collapsed') == [True, True, True]

        tree.state('hidden', True)
        assert ids(tree.hidden()) == ['1', '4', '7']

        tree.state_deep('hidden', False)
        tree.state_deep('focused', True)
        assert all(tree.state_deep('focused'))

    def test_invoke_shallow(self, tree):
        tree.invoke('hide')
        assert ids(tree.hidden()) == ['1', '4', '7']

    def test_invoke_deep_multiple_methods(self, tree):
        """Methods run in the order given, on each node before its children."""
        tree.invoke_deep(['expand', 'hide'])

        assert len(tree.hidden()) == 7
        assert ids(tree.expanded()) == ['1', '4', '5']

    def test_generated_verbs(self, tree):
        tree.expand_deep()
        assert ids(tree.expanded()) == ['1', '4', '5']

        tree.collapse_deep()
        assert len(tree.expanded()) == 0

        tree.node(4).children.soft_remove_deep()
        assert ids(tree.removed()) == ['5', '6']

    def test_invoke_unknown_method(self, tree):
        with pytest.raises(ValueError):
            tree.invoke('explode')

        with pytest.raises(ValueError):
            tree.invoke('_derive_selection')


class TestSorting:
    """Configured and explicit sorts."""

    FRUIT = [
        {'id': 'b', 'text': 'banana', 'rank': 2},
        {'id': 'c', 'text': 'cherry', 'rank': 1},
        {'id': 'a', 'text': 'apple', 'rank': 3},
    ]

    def test_sort_on_load(self):
        tree = Tree(data=self.FRUIT, sort='text')
        assert ids(tree) == ['a', 'b', 'c']

    def test_sorted_insert_ignores_index(self):
        tree = Tree(data=self.FRUIT, sort='text')
        tree.insert_at(0, {'id': 'd', 'text': 'blueberry'})

        assert ids(tree) == ['a', 'b', 'd', 'c']

    def test_sort_by_payload_and_callable(self):
        tree = Tree(data=self.FRUIT)
        assert ids(tree.sort('rank')) == ['c', 'b', 'a']
        assert ids(tree.sort(lambda node: -node.payload['rank'])) == ['a', 'b', 'c']

    def test_sort_is_shallow(self):
        data = [{'id': 'p', 'text': 'z', 'children': [{'id': 'y', 'text': 'y'}, {'id': 'x', 'text': 'x'}]},
                {'id': 'q', 'text': 'a'}]
        tree = Tree(data=data)
        tree.sort('text')

        assert ids(tree) == ['q', 'p']
        assert ids(tree.node('p').children) == ['y', 'x']

    def test_missing_values_sort_last(self):
        tree = Tree(data=[{'id': 1}, {'id': 2, 'text': 'b'}, {'id': 3, 'text': 'a'}])
        assert ids(tree.sort('text')) == ['3', '2', '1']

    def test_insert_without_sort(self, tree):
        tree.insert_at(1, {'id': 'new'})
        assert ids(tree) == ['1', 'new', '4', '7']
        assert isinstance(tree.model, TreeNodes)
