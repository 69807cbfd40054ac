"""Minimal XMP packet reader/writer.

Only the properties the metadata transformer touches are modelled. Unknown
properties found in a source packet are kept untouched.
"""

import copy
import xml.etree.ElementTree as ET
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

NAMESPACES: Dict[str, str] = {
    "x": "adobe:ns:meta/",
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "dc": "http://purl.org/dc/elements/1.1/",
    "xmp": "http://ns.adobe.com/xap/1.0/",
    "xmpMM": "http://ns.adobe.com/xap/1.0/mm/",
    "photoshop": "http://ns.adobe.com/photoshop/1.0/",
    "exif": "http://ns.adobe.com/exif/1.0/",
    "exifEX": "http://cipa.jp/exif/1.0/",
    "tiff": "http://ns.adobe.com/tiff/1.0/",
    "aux": "http://ns.adobe.com/exif/1.0/aux/",
}

for _prefix, _uri in NAMESPACES.items():
    ET.register_namespace(_prefix, _uri)

XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"

# Array container used for each array-valued property; anything else is simple text.
ARRAY_TYPES: Dict[str, str] = {
    "dc:creator": "Seq",
    "dc:subject": "Bag",
    "dc:description": "Alt",
    "dc:rights": "Alt",
    "dc:title": "Alt",
}

XmpValue = Union[str, List[str]]

_PACKET_HEADER = b'<?xpacket begin="\xef\xbb\xbf" id="W5M0MpCehiHzreSzNTczkc9d"?>\n'
_PACKET_TRAILER = b'\n<?xpacket end="w"?>'


def _qname(name: str) -> str:
    prefix, local = name.split(":", 1)
    return f"{{{NAMESPACES[prefix]}}}{local}"


def _rdf(local: str) -> str:
    return f"{{{NAMESPACES['rdf']}}}{local}"


class XmpPacket:
    """An XMP document backed by an ElementTree ``x:xmpmeta`` root."""

    def __init__(self, root: Optional[ET.Element] = None):
        self._root = root if root is not None else self._empty_root()

    @staticmethod
    def _empty_root() -> ET.Element:
        root = ET.Element(_qname("x:xmpmeta"))
        rdf = ET.SubElement(root, _rdf("RDF"))
        description = ET.SubElement(rdf, _rdf("Description"))
        description.set(_rdf("about"), "")
        return root

    @classmethod
    def from_bytes(cls, data: Union[bytes, str]) -> "XmpPacket":
        """
        Parse a serialized packet.

        Raises:
            ValueError: If the packet is not well-formed XML.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")
        data = data.strip(b"\x00 \t\r\n")
        try:
            element = ET.fromstring(data)
        except ET.ParseError as exc:
            raise ValueError(f"Malformed XMP packet: {exc}") from exc

        if element.tag == _rdf("RDF"):
            root = ET.Element(_qname("x:xmpmeta"))
            root.append(element)
            element = root
        if element.find(_rdf("RDF")) is None:
            raise ValueError("XMP packet has no rdf:RDF element")
        return cls(element)

    def copy(self) -> "XmpPacket":
        return XmpPacket(copy.deepcopy(self._root))

    def _descriptions(self) -> List[ET.Element]:
        rdf = self._root.find(_rdf("RDF"))
        if rdf is None:
            raise ValueError("XMP packet has no rdf:RDF element")
        found = rdf.findall(_rdf("Description"))
        if not found:
            description = ET.SubElement(rdf, _rdf("Description"))
            description.set(_rdf("about"), "")
            found = [description]
        return found

    def _iter_properties(self) -> Iterator[Tuple[ET.Element, str, bool]]:
        """Yield ``(description, clark_name, is_attribute)`` for every property."""
        for description in self._descriptions():
            for attr in list(description.attrib):
                if attr.startswith("{") and not attr.startswith(f"{{{NAMESPACES['rdf']}}}"):
                    yield description, attr, True
            for child in list(description):
                yield description, child.tag, False

    def names(self) -> List[str]:
        """Qualified names (``prefix:local``) of known-namespace properties present."""
        reverse = {uri: prefix for prefix, uri in NAMESPACES.items()}
        result = []
        for _, clark, _ in self._iter_properties():
            uri, local = clark[1:].split("}", 1)
            if uri in reverse:
                result.append(f"{reverse[uri]}:{local}")
        return result

    def get(self, name: str) -> Optional[XmpValue]:
        clark = _qname(name)
        for description in self._descriptions():
            if clark in description.attrib:
                return description.attrib[clark]
            child = description.find(clark)
            if child is None:
                continue
            container = next(iter(child), None)
            if container is not None and container.tag in (_rdf("Seq"), _rdf("Bag"), _rdf("Alt")):
                items = [li.text or "" for li in container.findall(_rdf("li"))]
                if name in ARRAY_TYPES and ARRAY_TYPES[name] == "Alt":
                    return items[0] if items else ""
                return items
            return child.text or ""
        return None

    def remove(self, name: str) -> None:
        self.remove_where(lambda clark: clark == _qname(name))

    def remove_where(self, predicate) -> int:
        """Remove every property whose Clark name satisfies ``predicate``."""
        removed = 0
        for description, clark, is_attribute in list(self._iter_properties()):
            if not predicate(clark):
                continue
            if is_attribute:
                del description.attrib[clark]
            else:
                for child in description.findall(clark):
                    description.remove(child)
            removed += 1
        return removed

    def remove_prefix(self, prefix: str, local_prefix: str = "") -> int:
        """Remove properties in namespace ``prefix`` whose local name starts with ``local_prefix``."""
        start = f"{{{NAMESPACES[prefix]}}}{local_prefix}"
        return self.remove_where(lambda clark: clark.startswith(start))

    def set(self, name: str, value: Union[str, Sequence[str]]) -> None:
        """Replace property ``name`` with ``value`` on the first description."""
        self.remove(name)
        description = self._descriptions()[0]
        element = ET.SubElement(description, _qname(name))
        array_type = ARRAY_TYPES.get(name)
        if array_type is None:
            element.text = value if isinstance(value, str) else ", ".join(value)
            return

        container = ET.SubElement(element, _rdf(array_type))
        values = [value] if isinstance(value, str) else list(value)
        for item in values:
            li = ET.SubElement(container, _rdf("li"))
            if array_type == "Alt":
                li.set(XML_LANG, "x-default")
            li.text = item

    def is_empty(self) -> bool:
        return not any(True for _ in self._iter_properties())

    def to_bytes(self) -> bytes:
        body = ET.tostring(self._root, encoding="unicode").encode("utf-8")
        return _PACKET_HEADER + body + _PACKET_TRAILER
