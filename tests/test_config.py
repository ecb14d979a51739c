"""Tests for linkspider.config module."""

import json

import pytest

from linkspider.config import ConfigError, SpiderConfig, load_config


class TestSpiderConfigDefaults:
    def test_defaults(self):
        config = SpiderConfig()
        assert config.root_url is None
        assert config.strict_ciphers is False
        assert config.report_spool_interval == 0
        assert config.exclude_patterns == []
        assert config.title_pattern is None
        assert config.engine.respect_robots_txt is True


class TestFromDict:
    def test_camel_case_keys(self):
        config = SpiderConfig.from_dict({
            "strictCiphers": True,
            "reportSpoolInterval": 5000,
            "excludePatterns": ["/private/*"],
            "includePatterns": ["/docs/*"],
            "additionalPaths": ["/sitemap.html"],
            "titlePattern": "^Docs",
        })
        assert config.strict_ciphers is True
        assert config.report_spool_interval == 5000
        assert config.exclude_patterns == ["/private/*"]
        assert config.include_patterns == ["/docs/*"]
        assert config.additional_paths == ["/sitemap.html"]
        assert config.title_pattern == "^Docs"

    def test_crawler_config_block(self):
        config = SpiderConfig.from_dict({
            "crawlerConfig": {"maxConcurrency": 2, "ignoreInvalidSSL": True, "acceptCookies": False},
        })
        assert config.engine.max_concurrency == 2
        assert config.ignore_invalid_ssl is True
        assert config.engine.extra == {"acceptCookies": False}

    def test_unknown_key(self):
        with pytest.raises(ConfigError, match="Unknown configuration keys: bogus"):
            SpiderConfig.from_dict({"bogus": 1})

    def test_not_an_object(self):
        with pytest.raises(ConfigError):
            SpiderConfig.from_dict(["/a"])

    def test_bad_list(self):
        with pytest.raises(ConfigError):
            SpiderConfig.from_dict({"excludePatterns": "/private/*"})

    @pytest.mark.parametrize("value", [-1, "1000", True])
    def test_bad_spool_interval(self, value):
        with pytest.raises(ConfigError):
            SpiderConfig.from_dict({"reportSpoolInterval": value})

    def test_bad_crawler_config(self):
        with pytest.raises(ConfigError):
            SpiderConfig.from_dict({"crawlerConfig": []})


class TestLoadConfig:
    def test_reads_json(self, tmp_path):
        path = tmp_path / "spider.json"
        path.write_text(json.dumps({"titlePattern": "^Home", "excludePatterns": ["*.pdf"]}))
        config = load_config(path)
        assert config.title_pattern == "^Home"
        assert config.exclude_patterns == ["*.pdf"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot read config file"):
            load_config(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_config(path)
