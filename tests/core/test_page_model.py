from core.page import Document, Element, IntersectionObserver


def test_element_attributes_and_class_list():
    el = Element("div", {"class": "card wide", "id": "c1", "data-x": "1"})
    assert el.class_list == {"card", "wide"}
    assert el.uid == "c1"
    assert "class" not in el.attrs
    el.set_attribute("data-y", 2)
    assert el.get_attribute("data-y") == "2"
    el.remove_attribute("data-x")
    assert not el.has_attribute("data-x")


def test_closest_walks_ancestors():
    doc = Document()
    card = doc.create_element(attrs={"data-prefetch-module": "ai"})
    inner = doc.create_element(parent=card)
    leaf = doc.create_element("span", parent=inner)
    assert leaf.closest("data-prefetch-module") is card
    assert card.closest("data-prefetch-module") is card
    assert doc.body.closest("data-prefetch-module") is None
    assert doc.query_all("data-prefetch-module") == [card]


def test_observer_root_margin_boundaries():
    doc = Document(viewport_height=800)
    seen = []
    observer = IntersectionObserver(
        doc, lambda entries: seen.extend(e.target.uid for e in entries),
        root_margin_px=50,
    )
    edge = doc.create_element(attrs={"id": "edge"}, top=850, height=20)
    beyond = doc.create_element(attrs={"id": "beyond"}, top=851, height=20)
    observer.observe(edge)
    observer.observe(beyond)
    assert seen == ["edge", "edge"]


def test_scroll_triggers_check_until_unobserved():
    doc = Document(viewport_height=100)
    seen = []
    observer = IntersectionObserver(
        doc, lambda entries: seen.extend(e.target.uid for e in entries)
    )
    el = doc.create_element(attrs={"id": "late"}, top=500, height=10)
    observer.observe(el)
    assert seen == []
    doc.scroll_to(450)
    assert seen == ["late"]
    observer.unobserve(el)
    doc.scroll_to(460)
    assert seen == ["late"]


def test_disconnect_detaches_from_document():
    doc = Document(viewport_height=100)
    seen = []
    observer = IntersectionObserver(doc, lambda entries: seen.append(entries))
    observer.observe(doc.create_element(top=1000))
    observer.disconnect()
    doc.scroll_to(1000)
    assert seen == []
    assert observer.targets == []


def test_dispatch_reaches_listeners_with_data():
    doc = Document()
    got = []
    doc.add_event_listener("mouseover", lambda ev: got.append((ev.type, ev.data)))
    target = doc.create_element()
    ev = doc.dispatch("mouseover", target, x=3)
    assert ev.target is target
    assert got == [("mouseover", {"x": 3})]
