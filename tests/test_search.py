"""
Tests for built-in and custom search.
"""

import re

import pytest

from treestatelib import LoaderError, Tree
from treestatelib.testing import RecordingRenderer, node_ids as ids


class TestBuiltinSearch:
    """String, pattern and predicate queries over node text."""

    def test_match_reveals_ancestors(self, tree):
        """Matches stay visible with their ancestors expanded; the rest hide."""
        matches = tree.search('f').result()

        assert ids(matches) == ['6']
        assert ids(tree.visible()) == ['4', '5', '6']
        assert tree.node(4).expanded()
        assert tree.node(1).hidden()
        assert tree.node(7).hidden()

    def test_case_insensitive(self, tree):
        assert ids(tree.search('B').result()) == ids(tree.search('b').result()) == ['2']

    def test_invalid_pattern_matches_literally(self):
        tree = Tree(data=[{'id': 1, 'text': 'f(x'}, {'id': 2, 'text': 'g'}])
        assert ids(tree.search('f(').result()) == ['1']

    def test_compiled_pattern(self, tree):
        assert ids(tree.search(re.compile(r'^[AB]$')).result()) == ['1', '2']

    def test_predicate(self, tree):
        matches = tree.search(lambda node: node.id in ('3', '7')).result()
        assert ids(matches) == ['3', '7']

    def test_blank_query_clears(self, tree):
        tree.search('f')

        matches = tree.search('  ').result()

        assert len(matches) == 0
        assert len(tree.hidden()) == 0
        assert len(tree.expanded()) == 0

    def test_clear_search(self, tree):
        tree.search('b')
        assert tree.clear_search() is tree
        assert ids(tree.visible()) == ['1', '4', '7']

    def test_removed_nodes_skipped(self, tree):
        tree.node(7).soft_remove()

        assert len(tree.search('g').result()) == 0
        assert not tree.node(7).hidden()

    def test_unsupported_query(self, tree):
        with pytest.raises(TypeError):
            tree.search(42)

    def test_single_render_pass(self, records):
        renderer = RecordingRenderer()
        tree = Tree(data=records, renderer=lambda tree: renderer, target='host')
        renderer.reset()

        tree.search('e')

        assert renderer.names == ['batch', 'end']

    @pytest.mark.asyncio
    async def test_search_async(self, tree):
        matches = await tree.search_async('c')
        assert ids(matches) == ['3']


class TestCustomSearch:
    """A configured ``search(query, resolve, reject)`` callable."""

    def test_resolved_records_are_shown(self, records):
        queries = []

        def search(query, resolve, reject):
            queries.append(query)
            resolve([{'id': 6}, {'id': 'remote', 'text': 'R'}])

        tree = Tree(data=records, search=search)
        matches = tree.search('anything').result()

        assert queries == ['anything']
        assert ids(matches) == ['6', 'remote']
        assert not tree.node(6).hidden()
        assert tree.node(5).expanded()
        assert tree.node(7).hidden()
        assert not tree.node('remote').hidden()

    def test_rejection(self, records):
        def search(query, resolve, reject):
            reject("offline")

        tree = Tree(data=records, search=search)
        errors = []
        tree.on('tree.loaderror', errors.append)

        future = tree.search('x')

        assert isinstance(future.exception(), LoaderError)
        assert errors == ["offline"]

    def test_raising_search_rejects(self, records):
        def search(query, resolve, reject):
            raise ConnectionError("down")

        tree = Tree(data=records, search=search)
        assert isinstance(tree.search('x').exception(), ConnectionError)

    def test_deferred_resolution(self, records):
        pending = []
        tree = Tree(data=records, search=lambda query, resolve, reject: pending.append(resolve))

        future = tree.search('x')
        assert not future.done()

        pending[0]([{'id': 2}])
        assert ids(future.result()) == ['2']
