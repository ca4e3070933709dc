"""
Per-field vertical corrections for manually rendered form values.

Values are in points; positive values move the drawn text down the page.
Only consulted for documents whose widgets carry no appearance streams.
"""
import json
import logging
from functools import lru_cache
from typing import Dict, Optional

from onboarding.config import get_settings
from onboarding.models import DocumentKind

logger = logging.getLogger(__name__)

OffsetTable = Dict[str, float]

FIELD_OFFSETS: Dict[DocumentKind, OffsetTable] = {
    DocumentKind.WAIVER: {
        "checkbox": 1.0,
        "fullName": 2.0,
        "date": 2.0,
        "dateOfBirth": 2.0,
        "ssn": 2.0,
        "driversLicenseName": 2.0,
        "otherName": 2.0,
        "driversLicense": 2.0,
        "state": 2.0,
        "full name": 2.0,
        "adress": 2.0,
        "cityStateZip": 2.0,
        "phone": 2.0,
        "reference1Name": 2.0,
        "reference1Phone": 2.0,
        "ref1cityStateZip": 2.0,
        "yesCrime": 1.0,
        "noCrime": 1.0,
        "dateCrime1": -4.0,
        "locationCrime1": -4.0,
        "policeAgency1": -4.0,
        "chargeSentence1": -4.0,
        "dateCrime2": -4.0,
        "locationCrime2": -4.0,
        "policeAgency2": -4.0,
        "chargeSentence2": -4.0,
        "dateCrime3": -4.0,
        "locationCrime3": -4.0,
        "policeAgency3": -4.0,
        "chargeSentence3": -4.0,
    },
    DocumentKind.DISCLOSURE: {
        "requestCopy": 1.0,
        "name": -1.0,
        "address": -1.0,
        "city": -1.0,
        "state": -1.0,
        "zip": -1.0,
        "cellPhone": -1.0,
        "ssn": -1.0,
        "dateOfBirth": -1.0,
        "driversLicense": -1.0,
        "dlState": -1.0,
        "signatureDate": -1.0,
    },
    DocumentKind.ADDON: {},
    DocumentKind.LEGACY: {
        "fullName": 2.0,
        "date": 2.0,
        "dateOfBirth": 2.0,
        "ssn": 2.0,
        "checkbox": 1.0,
    },
}


def _load_override_file(path: str) -> Dict[DocumentKind, OffsetTable]:
    """Read {"waiver": {"fullName": 3.5, ...}, ...} from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    overrides: Dict[DocumentKind, OffsetTable] = {}
    for kind_name, table in raw.items():
        try:
            kind = DocumentKind(kind_name)
        except ValueError:
            logger.warning(f"Ignoring offsets for unknown document kind: {kind_name}")
            continue
        overrides[kind] = {str(name): float(value) for name, value in table.items()}
    return overrides


@lru_cache()
def get_offset_tables() -> Dict[DocumentKind, OffsetTable]:
    """
    Build the offset configuration once per process.

    Built-in tables are merged with FIELD_OFFSETS_FILE when configured;
    file entries win per (document kind, field name).
    """
    tables = {kind: dict(table) for kind, table in FIELD_OFFSETS.items()}

    path = get_settings().field_offsets_file
    if path:
        for kind, table in _load_override_file(path).items():
            tables.setdefault(kind, {}).update(table)
        logger.info(f"Loaded field offset overrides from {path}")

    return tables


def field_offset(kind: Optional[DocumentKind], field_name: str) -> float:
    """Vertical correction for one field; 0 when unmapped."""
    if kind is None:
        return 0.0
    return get_offset_tables().get(kind, {}).get(field_name, 0.0)
