"""Tests for configuration loading and validation."""

from phishradar.config import Config, _load_heuristics, load_config, validate_config
from phishradar.constants import BANK_BRANDS


class TestLoadConfig:
    """Environment and config-file loading."""

    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
        monkeypatch.setenv("API_PORT", "9100")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("WHOIS_ENABLED", "false")
        monkeypatch.setenv("MAX_REDIRECT_HOPS", "3")
        config = load_config()
        assert config.api_port == 9100
        assert config.log_level == "DEBUG"
        assert config.whois_enabled is False
        assert config.max_redirect_hops == 3
        assert config.config_dir == tmp_path

    def test_heuristics_override_lists(self, monkeypatch, tmp_path):
        (tmp_path / "heuristics.yaml").write_text(
            "bank_brands:\n  - ExampleBank\n"
            "suspicious_tlds:\n  - .zip\n"
            "official_brand_domains:\n  examplebank: examplebank.vn\n",
            encoding="utf-8",
        )
        monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
        config = load_config()
        assert config.bank_brands == ["examplebank"]
        assert config.suspicious_tlds == {"zip"}
        assert config.official_brand_domains == {"examplebank": "examplebank.vn"}

    def test_missing_keys_keep_defaults(self, tmp_path):
        (tmp_path / "heuristics.yaml").write_text("urgency_terms: []\n", encoding="utf-8")
        assert _load_heuristics(tmp_path) == {}

    def test_malformed_yaml_falls_back(self, monkeypatch, tmp_path):
        (tmp_path / "heuristics.yaml").write_text("bank_brands: [unclosed\n", encoding="utf-8")
        monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
        config = load_config()
        assert config.bank_brands == list(BANK_BRANDS)

    def test_non_mapping_yaml_is_ignored(self, tmp_path):
        (tmp_path / "heuristics.yaml").write_text("- just\n- a list\n", encoding="utf-8")
        assert _load_heuristics(tmp_path) == {}

    def test_allowlist_file_extends_defaults(self, tmp_path):
        (tmp_path / "allowlist.txt").write_text(
            "# internal hosts\nIntranet.Example.com\n.corp.internal\n", encoding="utf-8"
        )
        config = Config(config_dir=tmp_path)
        assert "intranet.example.com" in config.allowlist
        assert ".corp.internal" in config.allowlist
        assert "google.com" in config.allowlist


class TestValidateConfig:
    """Startup validation."""

    def test_defaults_are_valid(self, tmp_path):
        assert validate_config(Config(config_dir=tmp_path)) == []

    def test_reports_every_problem(self, tmp_path):
        config = Config(
            config_dir=tmp_path,
            api_port=0,
            rule_workers=0,
            whois_timeout=0,
            logo_similarity_threshold=1.5,
            bulk_scan_limit=0,
        )
        errors = validate_config(config)
        assert "API_PORT out of range: 0" in errors
        assert "RULE_WORKERS must be at least 1" in errors
        assert "WHOIS_TIMEOUT must be positive" in errors
        assert "LOGO_SIMILARITY_THRESHOLD must be in (0, 1]" in errors
        assert "BULK_SCAN_LIMIT must be at least 1" in errors
