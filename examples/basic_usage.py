#!/usr/bin/env python3
"""
Basic treestatelib usage with a console renderer.

This example demonstrates:
- Loading a tree from plain records
- Selection, expansion and the indeterminate parent state
- Listening to node events
- A minimal renderer that repaints once per operation
"""

import sys
from pathlib import Path

# Add parent directory to path for development
sys.path.insert(0, str(Path(__file__).parent.parent))

from treestatelib import Tree


RECORDS = [
    {'id': 'docs', 'text': 'Documents', 'children': [
        {'id': 'cv', 'text': 'resume.pdf'},
        {'id': 'tax', 'text': 'taxes-2024.xlsx'},
    ]},
    {'id': 'pics', 'text': 'Pictures', 'children': [
        {'id': 'trip', 'text': 'Trip', 'children': [
            {'id': 'beach', 'text': 'beach.jpg'},
        ]},
    ]},
    {'id': 'notes', 'text': 'notes.txt'},
]


class ConsoleRenderer:
    """Prints the visible part of the tree after each paint pass."""

    def __init__(self, tree):
        self.tree = tree
        self.passes = 0

    def attach(self, target):
        print(f"Rendering into {target}")

    def end(self):
        self.paint()

    def apply_changes(self):
        self.paint()

    def paint(self):
        self.passes += 1
        print(f"\n-- paint pass {self.passes} --")
        for node in self.tree.visible():
            depth = len(node.get_parents())
            marker = '[x]' if node.selected() else '[-]' if node.indeterminate() else '[ ]'
            arrow = '+' if node.collapsed() and node.has_children() else ' '
            print(f"{'  ' * depth}{arrow} {marker} {node.text}")


def main():
    tree = Tree(data=RECORDS, renderer=ConsoleRenderer, target='console')

    tree.on('node.selected', lambda node: print(f"  selected: {node.text}"))

    # Selecting a child makes its parent indeterminate
    tree.node('tax').expand_parents()
    tree.node('tax').select()

    # Range selection across the expanded tree
    tree.expand_deep()
    start, end = tree.bounding_nodes(tree.node('beach'), tree.node('docs'))
    tree.select_between(start, end)

    print(f"\nSelected: {[node.text for node in tree.selected()]}")

    # Search hides everything that doesn't match
    matches = tree.search('jpg').result()
    print(f"\nSearch matches: {[node.text for node in matches]}")
    tree.clear_search()


if __name__ == "__main__":
    main()
