"""
Tests for document date parsing
"""

from datetime import date, datetime

import pytest

from docaudit.utils.dates import parse_document_date


class TestParseDocumentDate:
    """Tests for parse_document_date"""

    @pytest.mark.parametrize("text", [
        "2026-03-01",
        "01/03/2026",
        "01.03.2026",
        "01-03-2026",
        "2026/03/01",
        "1 March 2026",
        "1 Mar 2026",
        "March 1, 2026",
        "2026-03-01T10:15:00",
    ])
    def test_formats(self, text):
        """Day-first formats are read the European way"""
        assert parse_document_date(text) == date(2026, 3, 1)

    def test_date_objects(self):
        assert parse_document_date(date(2026, 3, 1)) == date(2026, 3, 1)
        assert parse_document_date(datetime(2026, 3, 1, 9, 30)) == date(2026, 3, 1)

    @pytest.mark.parametrize("value", [None, "", "  ", "soon", "31/02/2026", 20260301])
    def test_unreadable(self, value):
        assert parse_document_date(value) is None
