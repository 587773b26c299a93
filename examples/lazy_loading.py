#!/usr/bin/env python3
"""
Lazy child loading from an async data source.

This example demonstrates:
- A callable loader ``loader(node, resolve, reject)``
- Nodes declaring ``children: True`` to load on expand
- Awaiting loads with the coroutine wrappers
- Checkbox mode, where loaded children inherit a parent's selection
"""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path for development
sys.path.insert(0, str(Path(__file__).parent.parent))

from treestatelib import Tree, TreeConfig
from treestatelib.aio import await_future


CATALOG = {
    None: ['fruit', 'vegetables'],
    'fruit': ['apple', 'pear'],
    'vegetables': ['leek', 'kale', 'pea'],
}


async def fetch(node, resolve, reject):
    """Pretend to call a remote service."""
    await asyncio.sleep(0.05)
    key = node.id if node is not None else None
    names = CATALOG.get(key)
    if names is None:
        reject(f"no entries below {key!r}")
        return
    resolve([
        {'id': name, 'text': name.title(), 'children': True if name in CATALOG else None}
        for name in names
    ])


async def main():
    tree = Tree(TreeConfig.checkbox(fetch))
    tree.on('children.loaded', lambda node: print(f"loaded children of {node.text}"))
    tree.on('children.loaderror', lambda node, error: print(f"failed: {error}"))

    await await_future(tree.last_load)
    print(f"Roots: {[node.text for node in tree]}")

    tree.node('vegetables').select()
    children = await tree.node('vegetables').expand_async()
    print(f"Selected after load: {[node.text for node in children.selected()]}")

    await tree.expand_deep_async()
    print(f"All nodes: {[node.text for node in tree.flatten(lambda node: True)]}")


if __name__ == "__main__":
    asyncio.run(main())
