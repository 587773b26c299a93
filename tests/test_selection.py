"""
Tests for selection policy and derived indeterminate state.
"""

import pytest

from treestatelib import SelectionMode, Tree, TreeConfig
from treestatelib.testing import node_ids as ids


PAIR = [{'id': 1, 'text': 'A', 'children': [{'id': 2, 'text': 'B'}]}]


class TestExclusiveSelection:
    """Default single selection."""

    def test_child_selection_marks_parent_indeterminate(self):
        """Selecting the only child leaves the parent indeterminate, not selected."""
        tree = Tree(data=PAIR)
        tree.node(2).select()

        assert tree.node(1).state('indeterminate') is True
        assert tree.node(1).state('selected') is False

    def test_only_one_node_selected(self, tree):
        """Every select leaves exactly one selected node."""
        for node in tree.flatten(lambda node: True):
            node.select()
            assert ids(tree.selected()) == [node.id]

    def test_previous_selection_cleared(self, tree, recorder):
        tree.node(2).select()
        tree.node(7).select()

        assert not tree.node(2).selected()
        assert not tree.node(1).indeterminate()
        assert recorder.count('node.deselected') == 1

    def test_select_is_idempotent(self, tree, recorder):
        tree.node(7).select()
        tree.node(7).select()

        assert recorder.count('node.selected') == 1

    def test_toggle_select(self, tree):
        node = tree.node(7)
        node.toggle_select()
        assert node.selected()
        node.toggle_select()
        assert not node.selected()

    def test_last_selected_node(self, tree):
        assert tree.last_selected_node() is None

        tree.node(3).select()
        assert tree.last_selected_node() is tree.node(3)

        tree.remove_all()
        assert tree.last_selected_node() is None

    def test_removed_node_not_selectable(self, tree):
        """A soft-removed node stays unselected until it is restored."""
        node = tree.node(7)
        node.soft_remove()

        node.select()
        assert not node.selected()
        assert tree.last_selected_node() is None

        node.restore()
        node.select()
        assert node.selected()

    def test_unselectable_node(self, tree):
        node = tree.node(7)
        node.state('selectable', False)
        node.select()

        assert not node.selected()

    def test_allow_hook(self, records):
        """``selection.allow`` can veto selection per node."""
        tree = Tree(data=records, selection={'allow': lambda node: node.id != '7'})

        tree.node(7).select()
        tree.node(2).select()

        assert not tree.node(7).selectable()
        assert ids(tree.selected()) == ['2']


class TestMultipleSelection:
    """Multiple selection and deselection locks."""

    def test_multiple_without_auto_deselect(self, records):
        tree = Tree(data=records, selection={'multiple': True, 'auto_deselect': False})
        tree.node(2).select()
        tree.node(7).select()

        assert ids(tree.selected()) == ['2', '7']

    def test_disable_deselection(self, records):
        """Disabling deselection keeps earlier selections until re-enabled."""
        tree = Tree(data=records, selection={'multiple': True})
        tree.disable_deselection()
        tree.node(2).select()
        tree.node(7).select()
        assert ids(tree.selected()) == ['2', '7']

        tree.enable_deselection()
        tree.node(3).select()
        assert ids(tree.selected()) == ['3']

    def test_disable_deselection_needs_multiple(self, tree):
        tree.disable_deselection()
        assert tree.prevent_deselection is False
        assert tree.can_auto_deselect()

    def test_require_keeps_last_selection(self, records):
        """With ``require`` the first node is selected on load and stays selected."""
        tree = Tree(data=records, selection={'require': True})
        assert ids(tree.selected()) == ['1']

        tree.node(1).deselect()
        assert tree.node(1).selected()

        tree.node(7).select()
        assert ids(tree.selected()) == ['7']

    def test_direct_deselection_disabled(self, records):
        tree = Tree(data=records, selection={'disable_direct_deselection': True})
        node = tree.node(2)
        node.select()

        node.deselect_direct()
        assert node.selected()

        node.deselect()
        assert not node.selected()


class TestCheckboxSelection:
    """Cascading selection in checkbox mode."""

    @pytest.fixture
    def checkbox_tree(self, records):
        return Tree(TreeConfig.checkbox(records))

    def test_mode_forces_cascade(self, checkbox_tree):
        selection = checkbox_tree.config.selection
        assert selection.mode is SelectionMode.CHECKBOX
        assert selection.auto_select_children
        assert selection.multiple
        assert not selection.auto_deselect
        assert checkbox_tree.config.show_checkboxes

    def test_auto_select_children(self):
        """Selecting a parent selects its children and clears indeterminate."""
        tree = Tree(data=PAIR, selection={'auto_select_children': True})
        tree.node(1).select()

        assert tree.node(1).selected()
        assert tree.node(2).selected()
        assert tree.node(1).indeterminate() is False

    def test_partial_then_full(self, checkbox_tree):
        tree = checkbox_tree

        tree.node(2).select()
        assert tree.node(1).indeterminate()
        assert not tree.node(1).selected()

        tree.node(3).select()
        assert tree.node(1).selected()
        assert not tree.node(1).indeterminate()
        assert tree.node(2).selected()

        tree.node(3).deselect()
        assert not tree.node(1).selected()
        assert tree.node(1).indeterminate()

    def test_selection_propagates_to_root(self, checkbox_tree):
        checkbox_tree.node(6).select()

        assert checkbox_tree.node(5).selected()
        assert checkbox_tree.node(4).selected()
        assert not checkbox_tree.node(1).selected()

    def test_deselect_parent_clears_subtree(self, checkbox_tree):
        checkbox_tree.node(4).select()
        assert checkbox_tree.node(6).selected()

        checkbox_tree.node(4).deselect()
        assert len(checkbox_tree.selected()) == 0
        assert len(checkbox_tree.indeterminate()) == 0

    def test_nested_indeterminate(self):
        """A partially selected child makes its parent indeterminate too."""
        data = [{'id': 'root', 'children': [
            {'id': 'a', 'children': [{'id': 'a1'}, {'id': 'a2'}]},
            {'id': 'b'},
        ]}]
        tree = Tree(TreeConfig.checkbox(data))
        tree.node('a1').select()

        assert tree.node('a').indeterminate()
        assert tree.node('root').indeterminate()
        assert not tree.node('root').selected()

    def test_loaded_children_inherit_selection(self):
        data = [{'id': 1, 'itree': {'state': {'selected': True}},
                 'children': [{'id': 2}, {'id': 3}]}]
        tree = Tree(TreeConfig.checkbox(data))

        assert ids(tree.selected()) == ['1', '2', '3']
