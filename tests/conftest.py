"""Shared fixtures for the treestatelib test suite."""

import copy

import pytest

from treestatelib import Tree
from treestatelib.testing import EventRecorder, RecordingRenderer


# 1 A          (0)
#   2 B        (0.0)
#   3 C        (0.1)
# 4 D          (1)
#   5 E        (1.0)
#     6 F      (1.0.0)
# 7 G          (2)
SAMPLE_RECORDS = [
    {'id': 1, 'text': 'A', 'children': [
        {'id': 2, 'text': 'B'},
        {'id': 3, 'text': 'C'},
    ]},
    {'id': 4, 'text': 'D', 'children': [
        {'id': 5, 'text': 'E', 'children': [
            {'id': 6, 'text': 'F'},
        ]},
    ]},
    {'id': 7, 'text': 'G'},
]


@pytest.fixture
def records():
    """Fresh copy of the sample records."""
    return copy.deepcopy(SAMPLE_RECORDS)


@pytest.fixture
def tree(records):
    """Headless tree over the sample records."""
    return Tree(data=records)


@pytest.fixture
def expanded_tree(records):
    """Sample tree with every parent expanded."""
    tree = Tree(data=records)
    tree.expand_deep()
    return tree


@pytest.fixture
def recorder(tree):
    """EventRecorder on the ``tree`` fixture, without the held load events."""
    recorder = EventRecorder(tree)
    recorder.clear()
    return recorder


@pytest.fixture
def renderer():
    return RecordingRenderer()
