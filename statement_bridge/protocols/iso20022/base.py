"""
ISO 20022 Base Classes

Namespace-tolerant XML reading and schema-ordered XML building shared by
the ISO 20022 statement codecs.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Union
from xml.etree import ElementTree as ET
import logging
import re

from ...core.exceptions import MalformedXml

logger = logging.getLogger(__name__)

ISO20022_NAMESPACE_PREFIX = "urn:iso:std:iso:20022:tech:xsd"

# IBAN regex pattern
IBAN_PATTERN = re.compile(r"^[A-Z]{2}[0-9]{2}[A-Z0-9]{1,30}$")


def local_name(tag: str) -> str:
    """Strip the namespace from an element tag."""
    return tag.split("}")[-1] if "}" in tag else tag


@dataclass
class AccountIdentification:
    """Account identification (IBAN or other identifier)."""

    iban: Optional[str] = None
    other_id: Optional[str] = None

    @property
    def value(self) -> Optional[str]:
        return self.iban or self.other_id

    @classmethod
    def from_value(cls, value: str) -> "AccountIdentification":
        """Choose IBAN or Othr/Id depending on the identifier's shape."""
        compact = value.replace(" ", "").upper()
        if IBAN_PATTERN.match(compact) and compact == value:
            return cls(iban=value)
        return cls(other_id=value)


class ISO20022Parser:
    """Base parser for ISO 20022 messages."""

    def __init__(self):
        self.namespaces: Dict[str, str] = {}

    def _parse_xml(self, xml_content: Union[bytes, str]) -> ET.Element:
        """Parse XML to an element tree, reporting the error position."""
        if isinstance(xml_content, str) and xml_content.startswith("\ufeff"):
            xml_content = xml_content[1:]

        try:
            return ET.fromstring(xml_content)
        except ET.ParseError as e:
            line, column = getattr(e, "position", (None, None))
            raise MalformedXml(str(e), line=line, column=column)

    def _detect_namespace(self, root: ET.Element) -> Dict[str, str]:
        """Detect namespace from root element."""
        ns = {}
        tag = root.tag
        if "{" in tag:
            ns["ns"] = tag[1 : tag.index("}")]
        self.namespaces = ns
        return ns

    def _find_element(self, parent: ET.Element, name: str) -> Optional[ET.Element]:
        """Find a direct child by local name, with or without namespace."""
        if self.namespaces:
            elem = parent.find(f"ns:{name}", self.namespaces)
            if elem is not None:
                return elem

        elem = parent.find(name)
        if elem is not None:
            return elem

        for child in parent:
            if local_name(child.tag) == name:
                return child

        return None

    def _find_all_elements(self, parent: ET.Element, name: str) -> List[ET.Element]:
        """Find all direct children by local name, with or without namespace."""
        if self.namespaces:
            results = parent.findall(f"ns:{name}", self.namespaces)
            if results:
                return results

        results = parent.findall(name)
        if results:
            return results

        return [child for child in parent if local_name(child.tag) == name]

    def _find_path(self, parent: ET.Element, path: str) -> Optional[ET.Element]:
        """Follow a slash-separated path of local names."""
        elem = parent
        for name in path.split("/"):
            elem = self._find_element(elem, name)
            if elem is None:
                return None
        return elem

    def _get_text(self, element: Optional[ET.Element], default: str = "") -> str:
        """Safely get element text."""
        if element is not None and element.text:
            return element.text.strip()
        return default

    def _get_path_text(self, parent: ET.Element, path: str) -> str:
        return self._get_text(self._find_path(parent, path))

    def _get_date(self, element: Optional[ET.Element]) -> Optional[date]:
        """
        Parse a ``Dt`` or ``DtTm`` choice element into a date.

        Raises ValueError for unparsable content.
        """
        if element is None:
            return None

        dt_text = self._get_path_text(element, "Dt")
        if dt_text:
            return date.fromisoformat(dt_text[:10])

        dt_tm_text = self._get_path_text(element, "DtTm")
        if dt_tm_text:
            return datetime.fromisoformat(dt_tm_text[:19]).date()

        return None

    def _get_account(self, element: Optional[ET.Element]) -> Optional[str]:
        """Read ``Id/IBAN`` or ``Id/Othr/Id`` below an account element."""
        if element is None:
            return None
        return (
            self._get_path_text(element, "Id/IBAN")
            or self._get_path_text(element, "Id/Othr/Id")
            or None
        )


class ISO20022Builder:
    """Base builder for ISO 20022 messages."""

    def __init__(self, message_code: str, version: str, pretty_print: bool = True):
        self.message_code = message_code
        self.version = version
        self.pretty_print = pretty_print
        self.namespace = f"{ISO20022_NAMESPACE_PREFIX}:{message_code}.001.{version}"

    def _create_root(self) -> ET.Element:
        """Create root document element."""
        root = ET.Element("Document")
        root.set("xmlns", self.namespace)
        return root

    def _add_element(
        self,
        parent: ET.Element,
        tag: str,
        text: Optional[str] = None,
        attribs: Optional[Dict[str, str]] = None,
    ) -> ET.Element:
        """Add child element."""
        elem = ET.SubElement(parent, tag)
        if text:
            elem.text = text
        if attribs:
            for key, value in attribs.items():
                elem.set(key, value)
        return elem

    def _add_amount(self, parent: ET.Element, tag: str, amount_text: str, currency: str) -> ET.Element:
        """Add amount element with currency attribute."""
        return self._add_element(parent, tag, amount_text, {"Ccy": currency})

    def _add_account(self, parent: ET.Element, tag: str, value: str) -> ET.Element:
        """Add an account element holding an IBAN or other identifier."""
        acct = self._add_element(parent, tag)
        acct_id = self._add_element(acct, "Id")
        identification = AccountIdentification.from_value(value)
        if identification.iban:
            self._add_element(acct_id, "IBAN", identification.iban)
        else:
            othr = self._add_element(acct_id, "Othr")
            self._add_element(othr, "Id", identification.other_id)
        return acct

    def _add_date(self, parent: ET.Element, tag: str, value: date) -> ET.Element:
        """Add a ``Dt`` choice element."""
        elem = self._add_element(parent, tag)
        self._add_element(elem, "Dt", value.isoformat())
        return elem

    def _format_datetime(self, dt: datetime) -> str:
        """Format datetime for ISO 20022."""
        return dt.strftime("%Y-%m-%dT%H:%M:%S")

    def _to_bytes(self, root: ET.Element) -> bytes:
        """Convert element tree to UTF-8 XML with declaration."""
        if self.pretty_print:
            ET.indent(root, space="  ")
        return ET.tostring(root, encoding="utf-8", xml_declaration=True)
