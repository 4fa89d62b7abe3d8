"""
Watchlist file loaders

Reads the list publications already downloaded by the refresh jobs into
WatchlistEntry objects:

- OFAC SDN Enhanced XML (namespaced <entity> elements)
- UN Security Council consolidated XML (<INDIVIDUAL> / <ENTITY>)
- JSON lists ([{...}] or {"entries": [...]}) for EU, UK HMT, PEP and others

All XML goes through xml_utils.secure_parse.
"""

import json
import logging
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from lxml import etree

from screening.models import SubjectType, WatchlistEntry
from xml_utils import extract_xml_namespace, get_text_from_element, sanitize_for_logging, secure_parse

logger = logging.getLogger(__name__)


class ListLoadError(Exception):
    """Raised when a list file exists but cannot be read"""
    pass


def _file_timestamp(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)


def load_ofac_xml(xml_file: Path, list_code: str = 'ofac') -> List[WatchlistEntry]:
    """Load OFAC entities from an SDN Enhanced XML file"""
    tree, root = secure_parse(xml_file)
    ns = extract_xml_namespace(root)
    timestamp = _file_timestamp(xml_file)

    entries = []
    for entity_elem in root.iter(f'{ns}entity'):
        entry = _parse_ofac_entity(entity_elem, ns, list_code, timestamp)
        if entry:
            entries.append(entry)

    logger.info("Loaded %d OFAC entities from %s", len(entries), xml_file.name)
    return entries


def _parse_ofac_entity(elem: Any, ns: str, list_code: str,
                       timestamp: datetime) -> Optional[WatchlistEntry]:
    entity_id = elem.get('id')
    if not entity_id:
        return None

    entity_type = get_text_from_element(elem, f'{ns}entityType') or 'entity'

    names = []
    names_section = elem.find(f'{ns}names')
    if names_section is not None:
        for name_tag in names_section.findall(f'{ns}name'):
            for translation in name_tag.iter(f'{ns}translation'):
                full_name = get_text_from_element(translation, f'{ns}formattedFullName')
                if full_name:
                    names.append(full_name)
    names = list(dict.fromkeys(names))
    if not names:
        return None

    identifiers = []
    docs_section = elem.find(f'{ns}identityDocuments')
    if docs_section is not None:
        for doc in docs_section.findall(f'{ns}identityDocument'):
            number = get_text_from_element(doc, f'{ns}documentNumber')
            if number:
                identifiers.append(number)

    dob = None
    countries = []
    features_section = elem.find(f'{ns}features')
    if features_section is not None:
        for feature in features_section.findall(f'{ns}feature'):
            feature_type = (get_text_from_element(feature, f'{ns}type') or '').upper()
            value = get_text_from_element(feature, f'{ns}value')
            if not value:
                continue
            if 'DOB' in feature_type or ('DATE' in feature_type and 'BIRTH' in feature_type):
                dob = dob or value
            elif 'NATIONAL' in feature_type or 'CITIZEN' in feature_type:
                countries.append(value)
            elif 'IMO' in feature_type or 'VESSEL' in feature_type:
                identifiers.append(value)

    addresses_section = elem.find(f'{ns}addresses')
    if addresses_section is not None:
        for address in addresses_section.findall(f'{ns}address'):
            country = get_text_from_element(address, f'{ns}country')
            if country:
                countries.append(country)

    program = None
    programs = elem.find(f'{ns}sanctionsPrograms')
    if programs is not None:
        program_list = [p.text.strip() for p in programs.findall(f'{ns}sanctionsProgram') if p.text]
        program = '; '.join(program_list) or None

    return WatchlistEntry(
        entry_id=entity_id,
        list_code=list_code,
        primary_name=names[0],
        subject_type=SubjectType.INDIVIDUAL if entity_type.lower() == 'individual' else SubjectType.COMPANY,
        aliases=tuple(names[1:]),
        dob=dob,
        countries=tuple(dict.fromkeys(countries)),
        identifiers=frozenset(identifiers),
        source_timestamp=timestamp,
        program=program,
    )


def load_un_xml(xml_file: Path, list_code: str = 'un') -> List[WatchlistEntry]:
    """Load individuals and entities from the UN consolidated XML file"""
    tree, root = secure_parse(xml_file)
    timestamp = _file_timestamp(xml_file)

    entries = []
    for individual in root.iter('INDIVIDUAL'):
        entry = _parse_un_individual(individual, list_code, timestamp)
        if entry:
            entries.append(entry)
    for entity_elem in root.iter('ENTITY'):
        entry = _parse_un_entity(entity_elem, list_code, timestamp)
        if entry:
            entries.append(entry)

    logger.info("Loaded %d UN entries from %s", len(entries), xml_file.name)
    return entries


def _un_aliases(elem: Any, alias_tag: str) -> Tuple[str, ...]:
    aliases = []
    for alias in elem.iter(alias_tag):
        alias_name = get_text_from_element(alias, 'ALIAS_NAME')
        if alias_name:
            aliases.append(alias_name)
    return tuple(dict.fromkeys(aliases))


def _un_date_of_birth(elem: Any) -> Optional[str]:
    for dob_elem in elem.iter('INDIVIDUAL_DATE_OF_BIRTH'):
        value = get_text_from_element(dob_elem, 'DATE') or get_text_from_element(dob_elem, 'YEAR')
        if value:
            return value
    return get_text_from_element(elem, 'DATE_OF_BIRTH')


def _parse_un_individual(elem: Any, list_code: str,
                         timestamp: datetime) -> Optional[WatchlistEntry]:
    data_id = get_text_from_element(elem, 'DATAID')
    if not data_id:
        return None

    name_parts = [
        get_text_from_element(elem, tag)
        for tag in ('FIRST_NAME', 'SECOND_NAME', 'THIRD_NAME', 'FOURTH_NAME')
    ]
    name_parts = [n for n in name_parts if n]
    if not name_parts:
        return None

    countries = [nat.text.strip() for nat in elem.findall('.//NATIONALITY/VALUE') if nat.text]
    identifiers = []
    for doc in elem.iter('INDIVIDUAL_DOCUMENT'):
        number = get_text_from_element(doc, 'NUMBER')
        if number:
            identifiers.append(number)

    return WatchlistEntry(
        entry_id=data_id,
        list_code=list_code,
        primary_name=' '.join(name_parts),
        subject_type=SubjectType.INDIVIDUAL,
        aliases=_un_aliases(elem, 'INDIVIDUAL_ALIAS'),
        dob=_un_date_of_birth(elem),
        countries=tuple(dict.fromkeys(countries)),
        identifiers=frozenset(identifiers),
        source_timestamp=timestamp,
        program=get_text_from_element(elem, 'UN_LIST_TYPE') or 'UN',
        reason=get_text_from_element(elem, 'COMMENTS1'),
    )


def _parse_un_entity(elem: Any, list_code: str,
                     timestamp: datetime) -> Optional[WatchlistEntry]:
    data_id = get_text_from_element(elem, 'DATAID')
    name = get_text_from_element(elem, 'FIRST_NAME')
    if not data_id or not name:
        return None

    return WatchlistEntry(
        entry_id=data_id,
        list_code=list_code,
        primary_name=name,
        subject_type=SubjectType.COMPANY,
        aliases=_un_aliases(elem, 'ENTITY_ALIAS'),
        source_timestamp=timestamp,
        program=get_text_from_element(elem, 'UN_LIST_TYPE') or 'UN',
        reason=get_text_from_element(elem, 'COMMENTS1'),
    )


def load_json_list(json_file: Path, list_code: str) -> List[WatchlistEntry]:
    """Load a JSON list file: a list of entries or {"entries": [...]}"""
    with open(json_file, 'r', encoding='utf-8') as f:
        data = json.load(f)

    items = data.get('entries', []) if isinstance(data, Mapping) else data
    if not isinstance(items, list):
        raise ListLoadError(f"{json_file.name}: expected a list of entries")

    timestamp = _file_timestamp(json_file)
    entries = []
    for position, item in enumerate(items):
        if not isinstance(item, Mapping) or not (item.get('id') and (item.get('name') or item.get('primaryName'))):
            logger.warning("Skipping malformed %s entry at position %d", list_code, position)
            continue
        try:
            entry = WatchlistEntry.from_dict(item, list_code)
        except ValueError as e:
            logger.warning("Skipping %s entry %s: %s", list_code,
                           sanitize_for_logging(item.get('id')), e)
            continue
        if entry.source_timestamp is None:
            entry = replace(entry, source_timestamp=timestamp)
        entries.append(entry)

    logger.info("Loaded %d %s entries from %s", len(entries), list_code, json_file.name)
    return entries


def load_list_file(list_code: str, path: Path) -> List[WatchlistEntry]:
    """Dispatch on file type: OFAC or UN XML by list code, JSON otherwise"""
    if path.suffix.lower() == '.xml':
        if list_code == 'un':
            return load_un_xml(path, list_code)
        return load_ofac_xml(path, list_code)
    return load_json_list(path, list_code)


def load_list_files(data_dir: Path,
                    list_files: Mapping[str, str]) -> Tuple[Dict[str, List[WatchlistEntry]], Dict[str, str]]:
    """Load every configured list file

    Returns:
        (entries by list code, failure reason by list code). A missing or
        unreadable file never aborts the other lists.
    """
    lists: Dict[str, List[WatchlistEntry]] = {}
    failures: Dict[str, str] = {}
    for list_code, filename in list_files.items():
        path = data_dir / filename
        if not path.exists():
            logger.warning("List file not found for %s: %s", list_code, path)
            failures[list_code] = f"list file not found: {filename}"
            continue
        try:
            lists[list_code] = load_list_file(list_code, path)
        except (OSError, etree.XMLSyntaxError, json.JSONDecodeError, ListLoadError) as e:
            logger.error("Failed to load %s from %s: %s", list_code, path, e)
            failures[list_code] = f"failed to load {filename}: {e}"
    return lists, failures
