"""Tests for linkspider.cli module."""

import json
from unittest.mock import MagicMock, patch

from linkspider.cli import build_parser, config_from_args, main


class TestConfigFromArgs:
    def test_flags_override(self):
        args = build_parser().parse_args([
            "https://site.test/",
            "--exclude", "/private/*",
            "--exclude", "*.pdf",
            "--include", "/docs/*",
            "--additional-path", "/extra",
            "--title-pattern", "^Docs",
            "--report-spool-interval", "2000",
            "--strict-ciphers",
            "--ignore-invalid-ssl",
            "--max-concurrency", "2",
            "--max-depth", "3",
            "--timeout", "5",
            "--user-agent", "bot/1.0",
            "--ignore-robots",
        ])
        config = config_from_args(args)
        assert config.exclude_patterns == ["/private/*", "*.pdf"]
        assert config.include_patterns == ["/docs/*"]
        assert config.additional_paths == ["/extra"]
        assert config.title_pattern == "^Docs"
        assert config.report_spool_interval == 2000
        assert config.strict_ciphers and config.ignore_invalid_ssl
        assert config.engine.max_concurrency == 2
        assert config.engine.max_depth == 3
        assert config.engine.timeout == 5.0
        assert config.engine.user_agent == "bot/1.0"
        assert config.engine.respect_robots_txt is False

    def test_file_then_flags(self, tmp_path):
        path = tmp_path / "spider.json"
        path.write_text(json.dumps({"excludePatterns": ["/a/*"], "titlePattern": "^File"}))
        args = build_parser().parse_args(["https://site.test/", "--config", str(path), "--exclude", "/b/*"])
        config = config_from_args(args)
        assert config.exclude_patterns == ["/a/*", "/b/*"]
        assert config.title_pattern == "^File"

    def test_defaults_untouched(self):
        config = config_from_args(build_parser().parse_args(["https://site.test/"]))
        assert config.strict_ciphers is False
        assert config.engine.respect_robots_txt is True


class TestMain:
    def test_invalid_url(self, capsys):
        assert main(["not a url"]) == 2
        assert "error: Invalid URL" in capsys.readouterr().err

    def test_bad_config(self, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text("[]")
        assert main(["https://site.test/", "--config", str(path)]) == 2
        assert "error:" in capsys.readouterr().err

    def test_returns_crawl_exit_code(self):
        spider = MagicMock()
        spider.crawl.return_value = 1
        with patch("linkspider.cli.Spider", return_value=spider) as spider_cls:
            assert main(["https://site.test/", "--exclude", "/x/*"]) == 1
        url, config = spider_cls.call_args.args
        assert url == "https://site.test/"
        assert config.exclude_patterns == ["/x/*"]
