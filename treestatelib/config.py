"""Configuration system for treestatelib.

A tree is configured once, at construction. Nested dataclasses describe
the selection policy, node behavior and the optional collaborators
(renderer, custom search, sort). ``TreeConfig.normalized()`` applies the
combinations some modes force, and ``validate()`` reports problems before
any data is loaded.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .exceptions import ConfigurationError


STATE_NAMES = (
    'collapsed',
    'focused',
    'hidden',
    'indeterminate',
    'loading',
    'removed',
    'selectable',
    'selected',
)

DEFAULT_STATE: Dict[str, bool] = {
    'collapsed': True,
    'focused': False,
    'hidden': False,
    'indeterminate': False,
    'loading': False,
    'removed': False,
    'selectable': True,
    'selected': False,
}


class SelectionMode(Enum):
    """How selection behaves across the hierarchy."""
    DEFAULT = "default"     # Plain selection
    CHECKBOX = "checkbox"   # Parents and children select together


@dataclass
class SelectionConfig:
    """Selection policy."""

    allow: Optional[Callable[[Any], bool]] = None   # Returning False blocks selection
    auto_deselect: bool = True                      # Selecting clears other selections
    auto_select_children: bool = False              # Cascade selection to descendants
    disable_direct_deselection: bool = False        # Only programmatic deselection
    mode: SelectionMode = SelectionMode.DEFAULT
    multiple: bool = False
    require: bool = False                           # Keep at least one node selected

    def __post_init__(self):
        if not isinstance(self.mode, SelectionMode):
            try:
                self.mode = SelectionMode(self.mode)
            except ValueError:
                raise ConfigurationError(f"Unknown selection mode: {self.mode!r}") from None


@dataclass
class NodesConfig:
    """Node behavior."""

    reset_state_on_restore: bool = True


@dataclass
class TreeConfig:
    """Complete configuration for a tree.

    Attributes:
        data: Required data loader. A sequence of raw records, a callable
            ``loader(node, resolve, reject)``, an awaitable, a
            ``concurrent.futures.Future`` or a ``then``-able object.
        allow_load_events: State names whose ``node.<state>`` event is
            re-fired after a load for nodes that arrive with that state set.
        nodes: Node behavior settings.
        selection: Selection policy.
        renderer: Factory called with the tree, returning the renderer.
        target: Host surface handed to ``renderer.attach``.
        search: Custom search callable ``search(query, resolve, reject)``.
        sort: Sort key callable, or the name of a node property.
        show_checkboxes: Display hint for renderers; forced on in
            checkbox mode unless set explicitly.
        id_factory: Callable producing new node ids.
    """

    data: Any = None
    allow_load_events: List[str] = field(default_factory=list)
    nodes: NodesConfig = field(default_factory=NodesConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    renderer: Optional[Callable[[Any], Any]] = None
    target: Any = None
    search: Optional[Callable[..., Any]] = None
    sort: Optional[Union[str, Callable[[Any], Any]]] = None
    show_checkboxes: Optional[bool] = None
    id_factory: Optional[Callable[[], str]] = None

    @property
    def is_dynamic(self) -> bool:
        """True when children are fetched on demand through ``data``."""
        return callable(self.data)

    @property
    def allows_load_events(self) -> bool:
        return len(self.allow_load_events) > 0

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> 'TreeConfig':
        """Build a config from an already-normalized mapping.

        ``selection`` and ``nodes`` may be given as mappings or as their
        dataclasses. No deep merging with defaults is done beyond what the
        dataclass defaults provide.

        Raises:
            ConfigurationError: On unknown option names.
        """
        options = dict(options)
        selection = options.pop('selection', None)
        nodes = options.pop('nodes', None)

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(f"Unknown tree options: {', '.join(unknown)}")

        try:
            if isinstance(selection, Mapping):
                selection = SelectionConfig(**selection)
            if isinstance(nodes, Mapping):
                nodes = NodesConfig(**nodes)
        except TypeError as error:
            raise ConfigurationError(str(error)) from error

        return cls(
            selection=selection or SelectionConfig(),
            nodes=nodes or NodesConfig(),
            **options
        )

    @classmethod
    def checkbox(cls, data: Any, **options) -> 'TreeConfig':
        """Create config for a checkbox tree.

        Args:
            data: Data loader
            **options: Other ``TreeConfig`` fields

        Returns:
            TreeConfig in checkbox selection mode
        """
        return cls(
            data=data,
            selection=SelectionConfig(mode=SelectionMode.CHECKBOX),
            **options
        )

    def normalized(self) -> 'TreeConfig':
        """Return a copy with the forced option combinations applied.

        Checkbox mode always cascades selection and never auto-deselects.
        Cascading selection always allows multiple selected nodes.
        """
        selection = replace(self.selection)
        show_checkboxes = self.show_checkboxes

        if selection.mode is SelectionMode.CHECKBOX:
            selection.auto_select_children = True
            selection.auto_deselect = False
            if show_checkboxes is None:
                show_checkboxes = True

        if selection.auto_select_children:
            selection.multiple = True

        return replace(
            self,
            selection=selection,
            nodes=replace(self.nodes),
            allow_load_events=list(self.allow_load_events),
            show_checkboxes=bool(show_checkboxes),
        )

    def validate(self) -> List[str]:
        """Validate configuration for consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if self.data is None:
            errors.append("a data loader is required")

        for name in self.allow_load_events:
            if name not in STATE_NAMES:
                errors.append(f"unknown state in allow_load_events: {name!r}")

        if self.renderer is not None:
            if not callable(self.renderer):
                errors.append("renderer must be a callable returning a renderer")
            elif self.target is None:
                errors.append("target is required when a renderer is configured")

        if self.search is not None and not callable(self.search):
            errors.append("search must be callable")

        if self.selection.allow is not None and not callable(self.selection.allow):
            errors.append("selection.allow must be callable")

        if self.sort is not None and not (callable(self.sort) or isinstance(self.sort, str)):
            errors.append("sort must be a key callable or a property name")

        if self.id_factory is not None and not callable(self.id_factory):
            errors.append("id_factory must be callable")

        return errors
