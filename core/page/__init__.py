"""Headless page model used by the module loader.

Only the DOM surface the loader relies on is modelled:
 - elements with attributes, a class list, a parent chain and a vertical
   box (``top``/``height`` in page pixels)
 - document-level event listeners with bubbling-free dispatch
   (handlers receive the event and use ``closest`` themselves)
 - a scrollable viewport and IntersectionObserver with a root margin

Layout is explicit: callers position elements; nothing is computed.
"""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

_ids = itertools.count(1)


class Element:
    __slots__ = (
        "tag", "attrs", "class_list", "parent", "children",
        "top", "height", "text", "uid", "props",
    )

    def __init__(
        self,
        tag: str = "div",
        attrs: Optional[Dict[str, str]] = None,
        parent: Optional["Element"] = None,
        top: float = 0.0,
        height: float = 0.0,
    ) -> None:
        self.tag = tag
        self.attrs: Dict[str, str] = dict(attrs or {})
        self.class_list: set[str] = set(
            self.attrs.pop("class", "").split()
        )
        self.parent = parent
        self.children: List[Element] = []
        self.top = top
        self.height = height
        self.text = ""
        self.uid = self.attrs.get("id") or f"el-{next(_ids)}"
        # free-form slot for widgets bound to this element
        self.props: Dict[str, Any] = {}
        if parent is not None:
            parent.children.append(self)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Element {self.tag} {self.uid}>"

    def get_attribute(self, name: str) -> str | None:
        return self.attrs.get(name)

    def set_attribute(self, name: str, value: str) -> None:
        self.attrs[name] = str(value)

    def remove_attribute(self, name: str) -> None:
        self.attrs.pop(name, None)

    def has_attribute(self, name: str) -> bool:
        return name in self.attrs

    def closest(self, attr: str) -> Optional["Element"]:
        """Nearest self-or-ancestor carrying ``attr``."""
        node: Optional[Element] = self
        while node is not None:
            if attr in node.attrs:
                return node
            node = node.parent
        return None

    def iter_tree(self) -> Iterator["Element"]:
        yield self
        for child in self.children:
            yield from child.iter_tree()

    @property
    def bottom(self) -> float:
        return self.top + self.height


@dataclass(slots=True)
class Event:
    type: str
    target: Element
    data: Dict[str, Any] = field(default_factory=dict)


Listener = Callable[[Event], None]


class Document:
    def __init__(self, viewport_height: float = 800.0) -> None:
        self.body = Element("body", height=viewport_height)
        self.viewport_height = viewport_height
        self.scroll_y = 0.0
        self._listeners: Dict[str, List[Listener]] = {}
        self._observers: List[IntersectionObserver] = []

    def create_element(
        self,
        tag: str = "div",
        attrs: Optional[Dict[str, str]] = None,
        parent: Optional[Element] = None,
        top: float = 0.0,
        height: float = 0.0,
    ) -> Element:
        return Element(tag, attrs, parent or self.body, top=top, height=height)

    def query_all(self, attr: str) -> List[Element]:
        return [el for el in self.body.iter_tree() if attr in el.attrs]

    def add_event_listener(self, type_: str, listener: Listener) -> None:
        self._listeners.setdefault(type_, []).append(listener)

    def dispatch(self, type_: str, target: Element, **data: Any) -> Event:
        event = Event(type_, target, data)
        for listener in list(self._listeners.get(type_, ())):
            listener(event)
        return event

    def scroll_to(self, y: float) -> None:
        self.scroll_y = max(0.0, float(y))
        for observer in list(self._observers):
            observer.check()

    def _attach(self, observer: "IntersectionObserver") -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def _detach(self, observer: "IntersectionObserver") -> None:
        if observer in self._observers:
            self._observers.remove(observer)


@dataclass(slots=True)
class IntersectionEntry:
    target: Element
    is_intersecting: bool


class IntersectionObserver:
    """Reports observed elements whose box meets the expanded viewport.

    The trigger zone is the viewport grown by ``root_margin_px`` on both
    edges. Checks run when an element is observed and on every scroll;
    the callback gets only intersecting entries.
    """

    def __init__(
        self,
        document: Document,
        callback: Callable[[List[IntersectionEntry]], None],
        root_margin_px: float = 0.0,
    ) -> None:
        self._doc = document
        self._callback = callback
        self.root_margin_px = root_margin_px
        self._targets: List[Element] = []
        document._attach(self)

    @property
    def targets(self) -> List[Element]:
        return list(self._targets)

    def observe(self, element: Element) -> None:
        if element not in self._targets:
            self._targets.append(element)
        self.check()

    def unobserve(self, element: Element) -> None:
        if element in self._targets:
            self._targets.remove(element)

    def disconnect(self) -> None:
        self._targets.clear()
        self._doc._detach(self)

    def _intersects(self, el: Element) -> bool:
        zone_top = self._doc.scroll_y - self.root_margin_px
        zone_bottom = (
            self._doc.scroll_y + self._doc.viewport_height
            + self.root_margin_px
        )
        return el.bottom >= zone_top and el.top <= zone_bottom

    def check(self) -> None:
        entries = [
            IntersectionEntry(el, True)
            for el in list(self._targets)
            if self._intersects(el)
        ]
        if entries:
            self._callback(entries)


__all__ = [
    "Element",
    "Event",
    "Document",
    "IntersectionEntry",
    "IntersectionObserver",
]
