"""Tests for feature extraction."""

import pytest

from phishradar.analyzer import html_content
from phishradar.analyzer.features import VECTOR_FEATURES, FeatureExtractor
from phishradar.analyzer.html_content import MAX_LOGO_IMAGES, parse_content
from phishradar.utils.domains import to_ascii_host


@pytest.fixture
def extractor():
    return FeatureExtractor()


class TestUrlFeatures:
    """URL and host derived features."""

    def test_basic_fields(self, extractor):
        features = extractor.extract("https://Login.Example-Shop.xyz:8443/Verify/OTP?id=1")
        assert features.protocol == "https"
        assert features.host == "login.example-shop.xyz"
        assert features.path == "/verify/otp"
        assert features.query == "id=1"
        assert features.port == 8443
        assert features.registered_domain == "example-shop.xyz"
        assert features.subdomain == "login"
        assert features.tld == "xyz"
        assert features.is_suspicious_tld
        assert features.has_flag("suspicious_tld")
        assert features.hyphen_count == 1

    def test_missing_scheme_defaults_to_https(self, extractor):
        features = extractor.extract("example.com/login")
        assert features.protocol == "https"
        assert features.host == "example.com"

    def test_punycode_host(self, extractor):
        encoded = to_ascii_host("vietcombаnk.com")  # Cyrillic а
        features = extractor.extract(f"https://{encoded}/")
        assert features.has_punycode
        assert features.has_flag("punycode")
        assert features.unicode_host != features.host

    def test_unicode_host_is_encoded(self, extractor):
        features = extractor.extract("https://vіetcombank.com/")  # Cyrillic і
        assert features.host.startswith("xn--")

    def test_ip_host(self, extractor):
        features = extractor.extract("http://192.168.10.5/login")
        assert features.is_ip_host
        assert features.has_flag("ip_host")
        assert features.bank_brands == ()

    def test_at_symbol(self, extractor):
        features = extractor.extract("https://bank.com@evil.example/")
        assert features.has_at_symbol
        assert features.host == "evil.example"


class TestBrandFeatures:
    """Brand impersonation detection."""

    def test_brand_on_foreign_domain_is_impersonation(self, extractor):
        features = extractor.extract("https://vietcombank-secure.top/")
        assert features.bank_brands == ("vietcombank",)
        assert features.is_banking_impersonation
        assert features.has_flag("fake_bank")

    def test_official_domain_is_not_impersonation(self, extractor):
        features = extractor.extract("https://www.vietcombank.com.vn/ibanking")
        assert features.is_official_brand_domain
        assert not features.is_banking_impersonation

    def test_short_brand_needs_whole_token(self, extractor):
        assert "acb" not in extractor.extract("https://placebo.com/").bank_brands
        assert "acb" in extractor.extract("https://acb-online.net/").bank_brands


class TestContentFeatures:
    """Text and HTML derived features."""

    def test_keywords_and_flags(self, extractor):
        features = extractor.extract(
            "http://example.org/account",
            text="URGENT: verify your bank login now",
        )
        assert {"verify", "login", "urgent", "bank"} <= set(features.threat_keywords)
        assert features.has_urgency
        assert features.has_flag("phishing_keywords")
        assert features.has_flag("bank_keyword")
        assert features.has_flag("http_sensitive")

    def test_vietnamese_keywords_without_diacritics(self, extractor):
        features = extractor.extract("https://example.org/", text="Vui long xac thuc tai khoan ngay lap tuc")
        assert "xác thực" in features.threat_keywords
        assert features.has_urgency

    def test_gambling(self, extractor):
        features = extractor.extract("http://bestcasino.club/")
        assert features.is_gambling
        assert features.has_flag("gambling_site")

    def test_html_counters(self, extractor):
        html = """
        <html><head><link rel="icon" href="/favicon.ico"><script>var otp=1;</script></head>
        <body>
          <img src="/img/logo.png" alt="Bank logo">
          <form action="https://collector.example/steal" method="post">
            <input type="text" name="user">
            <input type="password" name="pass">
            <input type="hidden" name="token">
          </form>
          <a href="/a">A</a><iframe src="/x"></iframe>
          <p>Goi 0912345678 de duoc ho tro</p>
        </body></html>
        """
        features = extractor.extract("https://example.org/", html=html)
        assert features.form_count == 1
        assert features.input_count == 3
        assert features.hidden_input_count == 1
        assert features.script_count == 1
        assert features.link_count == 1
        assert features.iframe_count == 1
        assert features.has_sensitive_fields
        assert features.phone_number_found
        assert features.form_actions == ("https://collector.example/steal",)
        assert features.logo_images == ("/favicon.ico", "/img/logo.png")
        assert "var otp" not in features.content_text

    def test_logo_images_capped(self):
        html = "".join(f'<img src="/logo{i}.png">' for i in range(10))
        assert len(parse_content(html).logo_images) == MAX_LOGO_IMAGES

    def test_empty_html(self):
        counts = parse_content(None)
        assert counts.form_count == 0
        assert counts.visible_text == ""


class TestVector:
    """Classifier vector."""

    def test_vector_shape_and_values(self, extractor):
        features = extractor.extract("http://my-bank.example/otp")
        vector = features.to_vector()
        assert len(vector) == len(VECTOR_FEATURES)
        values = dict(zip(VECTOR_FEATURES, vector))
        assert values["is_http"] == 1.0
        assert values["has_hyphen"] == 1.0
        assert values["has_otp_keyword"] == 1.0
        assert values["has_bank_keyword"] == 1.0
        assert values["url_length"] == float(len("http://my-bank.example/otp"))

    def test_to_dict_is_json_friendly(self, extractor):
        data = extractor.extract("https://example.org/", text="verify").to_dict()
        assert isinstance(data["threat_flags"], list)
        assert isinstance(data["threat_keywords"], list)


class TestExtractionNeverRaises:
    """Malformed input degrades gracefully."""

    @pytest.mark.parametrize("url", ["", "http://[::1", "://", "http://exa mple.com/ x"])
    def test_malformed_urls(self, extractor, url):
        features = extractor.extract(url, html="<form><input", text=None)
        assert features.url == url

    def test_internal_failure_returns_minimal_featureset(self, extractor, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("parser exploded")

        monkeypatch.setattr(extractor, "_extract", boom)
        features = extractor.extract("https://example.org/")
        assert features.url == "https://example.org/"
        assert features.host == ""

    def test_parser_failure_falls_back_to_substring_counts(self, extractor, monkeypatch):
        def boom(self, data):
            raise RuntimeError("parser exploded")

        monkeypatch.setattr(html_content._ContentParser, "feed", boom)
        html = "<FORM action='/x'><input name=a><input type=\"hidden\"></form><form>"
        counts = parse_content(html)
        assert counts.form_count == 2
        assert counts.input_count == 2
        assert counts.hidden_input_count == 1

        features = extractor.extract("https://example.org/login", html=html)
        assert features.host == "example.org"
        assert features.path == "/login"
        assert features.form_count == 2
        assert features.input_count == 2

    def test_fallback_failure_yields_empty_counts(self, extractor, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("exploded")

        monkeypatch.setattr(html_content._ContentParser, "feed", boom)
        monkeypatch.setattr(html_content, "_fallback_counts", boom)
        assert parse_content("<form><input></form>").form_count == 0

        features = extractor.extract("https://example.org/login", html="<form><input></form>")
        assert features.host == "example.org"
        assert features.path == "/login"
        assert features.form_count == 0
        assert features.input_count == 0
