"""Tests for domain and text helpers."""

import pytest

from phishradar.utils.domains import (
    canonicalize_domain,
    host_matches,
    is_ip_address,
    read_domain_list,
    registered_domain,
    to_ascii_host,
    to_unicode_host,
)
from phishradar.utils.text import find_terms, fold, longest_digit_run, normalize_homoglyphs, shannon_entropy


class TestCanonicalizeDomain:
    """Host canonicalisation."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("https://WWW.Example.com/path?q=1", "example.com"),
            ("example.com:8080", "example.com"),
            ("  sub.Example.com.  ", "sub.example.com"),
            ("", ""),
        ],
    )
    def test_canonical_forms(self, value, expected):
        assert canonicalize_domain(value) == expected

    def test_registered_domain_uses_public_suffix(self):
        assert registered_domain("https://login.vietcombank.com.vn/x") == "vietcombank.com.vn"
        assert registered_domain("a.b.example.co.uk") == "example.co.uk"


class TestIdn:
    """Punycode conversions."""

    def test_unicode_host_encodes_to_punycode(self):
        assert to_ascii_host("bücher.de").startswith("xn--")

    def test_ascii_host_unchanged(self):
        assert to_ascii_host("Example.COM") == "example.com"

    def test_round_trip_display(self):
        encoded = to_ascii_host("bücher.de")
        assert to_unicode_host(encoded) == "bücher.de"

    def test_ip_detection(self):
        assert is_ip_address("192.168.1.10")
        assert is_ip_address("[::1]")
        assert not is_ip_address("example.com")


class TestHostMatches:
    """Allowlist matching honours label boundaries."""

    def test_exact_and_subdomain(self):
        assert host_matches("google.com", ["google.com"])
        assert host_matches("mail.google.com", ["google.com"])

    def test_lookalike_does_not_match(self):
        assert not host_matches("notgoogle.com", ["google.com"])

    def test_suffix_entries(self):
        assert host_matches("huflit.edu.vn", [".edu.vn"])
        assert not host_matches("edu.vn.evil.com", [".edu.vn"])

    def test_read_domain_list(self, tmp_path):
        path = tmp_path / "allow.txt"
        path.write_text("# comment\nWWW.Example.org\n.gov.vn\n\n", encoding="utf-8")
        assert read_domain_list(path) == {"example.org", ".gov.vn"}
        assert read_domain_list(tmp_path / "missing.txt") == set()


class TestText:
    """Text folding and keyword helpers."""

    def test_fold_strips_vietnamese_diacritics(self):
        assert fold("Xác Thực Đăng Nhập") == "xac thuc dang nhap"

    def test_find_terms_ignores_diacritics_and_dedupes(self):
        found = find_terms("Vui long xac thuc tai khoan", ["xác thực", "xac thuc", "login"])
        assert found == ["xác thực"]

    def test_homoglyphs(self):
        assert normalize_homoglyphs("vіetcombаnk") == "vietcombank"
        assert normalize_homoglyphs("vietc0mbank", digits=True) == "vietcombank"
        assert normalize_homoglyphs("vietc0mbank") == "vietc0mbank"

    def test_entropy(self):
        assert shannon_entropy("") == 0.0
        assert shannon_entropy("aaaa") == 0.0
        assert shannon_entropy("abcd") == pytest.approx(2.0)

    def test_longest_digit_run(self):
        assert longest_digit_run("ab12c3456") == 4
        assert longest_digit_run("abc") == 0
