import re

import pytest

from ingest_crawler.exceptions import ConfigError
from ingest_crawler.utils.config import ConfigManager, load_config, parse_config


CONFIG_YAML = """
crawler:
  seed_urls:
    - https://a.test/
  max_pages: 50
  max_depth: 2
  min_delay_ms: 800
  exclude_patterns:
    - '/login'
    - '/wp-json/'
  host_aliases:
    WWW.A.TEST: a.test
storage:
  data_directory: /tmp/pages
logging:
  level: debug
"""


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text(CONFIG_YAML, encoding='utf-8')

    config = load_config(str(path))

    assert config.crawler.seed_urls == ['https://a.test/']
    assert config.crawler.max_pages == 50
    assert config.crawler.respect_robots_txt is True
    assert config.storage.data_directory == '/tmp/pages'
    assert config.monitoring.metrics_enabled is False


def test_to_options_compiles_patterns(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text(CONFIG_YAML, encoding='utf-8')
    options = load_config(str(path)).crawler.to_options()

    assert options.max_depth == 2
    assert options.min_delay_ms == 800
    assert [p.pattern for p in options.exclude_patterns] == ['/login', '/wp-json/']
    assert options.exclude_patterns[0].search('https://a.test/LOGIN')
    assert options.allowed_content_types.search('text/html; charset=utf-8')
    assert not options.allowed_content_types.search('application/pdf')
    assert options.url_filter('https://a.test/page')
    assert not options.url_filter('https://a.test/logo.png')
    assert options.host_aliases == {'www.a.test': 'a.test'}


def test_defaults_when_sections_missing():
    config = parse_config({'crawler': {'seed_urls': ['https://a.test/']}})

    assert config.crawler.max_pages == 200
    assert config.crawler.max_depth == 3
    assert config.crawler.to_options().same_origin_only is True
    assert config.logging.level == 'INFO'


@pytest.mark.parametrize('crawler, message', [
    ({'max_pages': 0}, 'max_pages'),
    ({'max_depth': -1}, 'max_depth'),
    ({'min_delay_ms': -5}, 'min_delay_ms'),
    ({'max_retries': -1}, 'max_retries'),
    ({'exclude_patterns': ['(unclosed']}, 'Invalid pattern'),
    ({'unknown_option': 1}, 'Unknown keys'),
])
def test_invalid_values_are_rejected(crawler, message):
    with pytest.raises(ConfigError, match=re.escape(message)):
        parse_config({'crawler': crawler})


def test_invalid_log_level():
    with pytest.raises(ConfigError, match='log level'):
        parse_config({'logging': {'level': 'LOUD'}})


def test_missing_file_and_unloaded_manager(tmp_path):
    manager = ConfigManager(str(tmp_path / 'absent.yaml'))
    with pytest.raises(FileNotFoundError):
        manager.load_config()
    with pytest.raises(ConfigError):
        manager.config


def test_invalid_yaml(tmp_path):
    path = tmp_path / 'broken.yaml'
    path.write_text('crawler: [unclosed', encoding='utf-8')
    with pytest.raises(ConfigError):
        load_config(str(path))
