"""
Bluetooth SIG company identifier lookup.

Loads the assigned-numbers table in the SIG YAML layout:

    company_identifiers:
      - value: 0x004C
        name: 'Apple, Inc.'
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping, Optional, Union

import yaml

from ..errors import CompanyIdentifiersError
from .constants import COMPANY_IDENTIFIERS_FILENAME, UNKNOWN_COMPANY

logger = logging.getLogger('tagwatch.bluetooth.company_ids')

DEFAULT_COMPANY_IDENTIFIERS_PATH = Path(__file__).resolve().parent.parent / 'data' / COMPANY_IDENTIFIERS_FILENAME


class CompanyIdentifiers:
    """Read-only company identifier -> company name lookup."""

    def __init__(self, names: Optional[Mapping[int, str]] = None):
        self._names: dict[int, str] = dict(names or {})

    def resolve(self, company_id: int) -> str:
        """Return the company name, or 'Unknown' for unassigned identifiers."""
        return self._names.get(company_id, UNKNOWN_COMPANY)

    def __contains__(self, company_id: object) -> bool:
        return company_id in self._names

    def __len__(self) -> int:
        return len(self._names)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CompanyIdentifiers):
            return NotImplemented
        return self._names == other._names

    def __repr__(self) -> str:
        return f'CompanyIdentifiers({len(self._names)} entries)'


def load_company_identifiers(path: Union[str, Path, None] = None) -> CompanyIdentifiers:
    """
    Load the company identifier table from a YAML file.

    Args:
        path: Location of the table; the bundled table when None.

    Returns:
        The populated CompanyIdentifiers lookup.

    Raises:
        CompanyIdentifiersError: If the file is missing, unreadable or malformed.
    """
    table_path = Path(path) if path is not None else DEFAULT_COMPANY_IDENTIFIERS_PATH

    try:
        with table_path.open('r', encoding='utf-8') as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise CompanyIdentifiersError(f"Company identifiers file not found: {table_path}") from e
    except OSError as e:
        raise CompanyIdentifiersError(f"Failed to open company identifiers file {table_path}: {e}") from e
    except yaml.YAMLError as e:
        raise CompanyIdentifiersError(f"Failed to decode company identifiers file {table_path}: {e}") from e

    if not isinstance(raw, dict):
        raise CompanyIdentifiersError(f"Empty or invalid company identifiers file: {table_path}")

    entries = raw.get('company_identifiers')
    if not isinstance(entries, list):
        raise CompanyIdentifiersError(
            f"Company identifiers file {table_path} has no 'company_identifiers' list"
        )

    names: dict[int, str] = {}
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or 'value' not in entry or 'name' not in entry:
            raise CompanyIdentifiersError(f"Malformed entry {index} in {table_path}: {entry!r}")
        value = entry['value']
        if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 0xFFFF:
            raise CompanyIdentifiersError(f"Invalid company identifier at entry {index} in {table_path}: {value!r}")
        names[value] = str(entry['name'])

    logger.info(f"Loaded {len(names)} company identifiers from {table_path}")
    return CompanyIdentifiers(names)
