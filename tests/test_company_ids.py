"""Unit tests for the company identifier loader."""

import pytest

from tagwatch.bluetooth.company_ids import (
    DEFAULT_COMPANY_IDENTIFIERS_PATH,
    CompanyIdentifiers,
    load_company_identifiers,
)
from tagwatch.bluetooth.constants import APPLE_COMPANY_ID, UNKNOWN_COMPANY
from tagwatch.errors import CompanyIdentifiersError


@pytest.fixture
def write_table(tmp_path):
    def _write(text):
        path = tmp_path / 'company_identifiers.yaml'
        path.write_text(text, encoding='utf-8')
        return path
    return _write


class TestCompanyIdentifiers:
    """Tests for the lookup table."""

    def test_resolve_known(self, company_ids):
        assert company_ids.resolve(APPLE_COMPANY_ID) == "Apple, Inc."

    def test_resolve_unknown(self, company_ids):
        assert company_ids.resolve(0xFFFE) == UNKNOWN_COMPANY

    def test_empty_table(self):
        table = CompanyIdentifiers()
        assert len(table) == 0
        assert table.resolve(APPLE_COMPANY_ID) == "Unknown"


class TestLoadCompanyIdentifiers:
    """Tests for loading the SIG YAML table."""

    def test_load(self, write_table):
        path = write_table(
            "company_identifiers:\n"
            "  - value: 0x004C\n"
            "    name: 'Apple, Inc.'\n"
            "  - value: 0x0075\n"
            "    name: 'Samsung Electronics Co. Ltd.'\n"
        )
        table = load_company_identifiers(path)

        assert len(table) == 2
        assert APPLE_COMPANY_ID in table
        assert table.resolve(0x0075) == "Samsung Electronics Co. Ltd."
        assert table.resolve(0x0001) == "Unknown"

    def test_bundled_table(self):
        assert DEFAULT_COMPANY_IDENTIFIERS_PATH.exists()
        table = load_company_identifiers()
        assert table.resolve(APPLE_COMPANY_ID) == "Apple, Inc."

    def test_missing_file(self, tmp_path):
        with pytest.raises(CompanyIdentifiersError, match="not found"):
            load_company_identifiers(tmp_path / 'missing.yaml')

    def test_malformed_yaml(self, write_table):
        path = write_table("company_identifiers: [value: 1\n")
        with pytest.raises(CompanyIdentifiersError, match="decode"):
            load_company_identifiers(path)

    def test_empty_file(self, write_table):
        with pytest.raises(CompanyIdentifiersError):
            load_company_identifiers(write_table(""))

    def test_missing_list(self, write_table):
        with pytest.raises(CompanyIdentifiersError, match="company_identifiers"):
            load_company_identifiers(write_table("vendors: []\n"))

    @pytest.mark.parametrize('entry', [
        "  - name: 'No value'\n",
        "  - value: 0x0001\n",
        "  - just a string\n",
        "  - value: 'abc'\n    name: 'Text value'\n",
        "  - value: 0x10000\n    name: 'Too large'\n",
        "  - value: true\n    name: 'Boolean'\n",
    ])
    def test_bad_entry(self, write_table, entry):
        path = write_table("company_identifiers:\n" + entry)
        with pytest.raises(CompanyIdentifiersError):
            load_company_identifiers(path)
