"""
Shared XML and logging utilities for the watchlist screening engine

Used by the list loaders (OFAC / UN XML publications) and by every module
that logs user-supplied identity data.

SECURITY: XML parsing disables DTDs, entity resolution and network access
to prevent XXE attacks on downloaded list files.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Any, Tuple

from lxml import etree

logger = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r'[\r\n\x00-\x1f\x7f-\x9f\u200b-\u200f\u2028-\u202e\u2060\ufeff]')
_MULTI_SPACE = re.compile(r'\s+')


def get_secure_parser() -> etree.XMLParser:
    """Get an lxml parser that refuses DTDs, entities and network access"""
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        dtd_validation=False,
        load_dtd=False,
        huge_tree=False
    )


def secure_parse(xml_path: Path) -> Tuple[Any, Any]:
    """Securely parse a watchlist XML file

    Args:
        xml_path: Path to XML file

    Returns:
        Tuple of (tree, root) element

    Raises:
        etree.XMLSyntaxError: If the file is not well-formed XML
    """
    tree = etree.parse(str(xml_path), get_secure_parser())
    return tree, tree.getroot()


def sanitize_for_logging(text: Any, max_length: int = 500) -> str:
    """Sanitize user input for safe logging, preventing log injection

    Newlines, carriage returns and other control characters are replaced
    so a screened name cannot forge extra log lines.
    """
    if not text:
        return ''
    sanitized = _CONTROL_CHARS.sub(' ', str(text))
    sanitized = _MULTI_SPACE.sub(' ', sanitized).strip()
    return sanitized[:max_length]


def extract_xml_namespace(root: Any) -> str:
    """Return the namespace of a parsed root element as '{uri}' or ''

    Example:
        >>> extract_xml_namespace(root)
        '{https://sanctionslistservice.ofac.treas.gov/api/PublicationPreview/exports/ENHANCED_XML}'
    """
    tag = root.tag if isinstance(root.tag, str) else ''
    if tag.startswith('{'):
        return tag[:tag.index('}') + 1]
    return ''


def get_text_from_element(elem: Any, path: str) -> Optional[str]:
    """Safely get stripped text of a child element, or None if missing/empty"""
    child = elem.find(path)
    if child is not None and child.text:
        text = child.text.strip()
        return text or None
    return None
