"""Tests for color file loading, settings and the command line entry point."""

import json
import logging
from pathlib import Path

import pytest

from accent import format_color, load_colors_file, main, parse_args
from accent_config import AccentSettings
from accent_errors import ColorFileError
from color_math import Color


def write_colors(directory, name, hexes):
    (directory / f"{name}.json").write_text(json.dumps(hexes))


def test_load_colors_file_sorts_by_hex(tmp_path):
    write_colors(tmp_path, 'base-colors', ['#FF0000', '#00ff00', '#0000FF'])
    loaded = load_colors_file('base-colors', tmp_path)
    assert [c.hex for c in loaded] == ['#0000ff', '#00ff00', '#ff0000']


def test_load_colors_file_missing(tmp_path):
    with pytest.raises(ColorFileError) as excinfo:
        load_colors_file('nope', tmp_path)
    assert excinfo.value.path == tmp_path / 'nope.json'


@pytest.mark.parametrize("content", ['[', '{"a": "#ffffff"}', '["#ffffff", "red"]', '[16777215]'])
def test_load_colors_file_rejects_bad_content(tmp_path, content):
    (tmp_path / 'bad.json').write_text(content)
    with pytest.raises(ColorFileError):
        load_colors_file('bad', tmp_path)


def test_load_colors_file_rejects_undecodable_bytes(tmp_path):
    (tmp_path / 'bad.json').write_bytes(b'["#ff\xff0000"]')
    with pytest.raises(ColorFileError):
        load_colors_file('bad', tmp_path)


def test_load_colors_file_rejects_directory(tmp_path):
    (tmp_path / 'dir.json').mkdir()
    with pytest.raises(ColorFileError) as excinfo:
        load_colors_file('dir', tmp_path)
    assert excinfo.value.path == tmp_path / 'dir.json'


def test_main_reports_unreadable_file(tmp_path, monkeypatch):
    (tmp_path / 'base-colors.json').write_bytes(b'["#ff\xff0000"]')
    monkeypatch.setenv('ACCENT_DATA_DIR', str(tmp_path))
    monkeypatch.delenv('ACCENT_SAMPLE_LIMIT', raising=False)
    monkeypatch.delenv('ACCENT_LOG_LEVEL', raising=False)
    assert main([]) == 1


def test_format_color():
    details = format_color(Color(0x336699))
    assert details['hex'] == '#336699'
    assert details['url'] == 'http://rgb.to/336699'
    assert 0 <= details['luma'] <= 255


def test_parse_args_default_and_flag():
    assert parse_args([]).file == 'base-colors'
    assert parse_args(['--file', 'party-colors']).file == 'party-colors'


def test_settings_from_env(tmp_path):
    settings = AccentSettings.from_env('sub/party', environ={
        'ACCENT_DATA_DIR': str(tmp_path),
        'ACCENT_SAMPLE_LIMIT': '12',
        'ACCENT_NO_CACHE': 'yes',
        'ACCENT_LOG_LEVEL': 'debug',
    })
    assert settings.data_dir == tmp_path
    assert settings.cache_dir == tmp_path
    assert settings.sample_limit == 12
    assert settings.use_cache is False
    assert settings.log_level == logging.DEBUG
    assert settings.cache_key('first') == 'party-first'


def test_settings_defaults():
    settings = AccentSettings.from_env(environ={})
    assert settings.base_file == 'base-colors'
    assert settings.palette_file == 'pantone-colors'
    assert settings.data_dir == Path('.')
    assert settings.sample_limit is None
    assert settings.use_cache is True


@pytest.mark.parametrize("env", [
    {'ACCENT_SAMPLE_LIMIT': 'many'},
    {'ACCENT_SAMPLE_LIMIT': '-3'},
    {'ACCENT_LOG_LEVEL': 'chatty'},
])
def test_settings_reject_bad_values(env):
    with pytest.raises(ValueError):
        AccentSettings.from_env(environ=env)


def test_main_runs_pipeline_and_writes_cache(tmp_path, monkeypatch, caplog):
    write_colors(tmp_path, 'base-colors', ['#ffffff', '#000000'])
    write_colors(tmp_path, 'pantone-colors', ['#ff0000', '#00ff00', '#0000ff'])
    monkeypatch.setenv('ACCENT_DATA_DIR', str(tmp_path))
    monkeypatch.setenv('ACCENT_SAMPLE_LIMIT', '16')
    monkeypatch.delenv('ACCENT_CACHE_DIR', raising=False)
    monkeypatch.delenv('ACCENT_NO_CACHE', raising=False)
    monkeypatch.delenv('ACCENT_LOG_LEVEL', raising=False)

    with caplog.at_level(logging.INFO):
        assert main([]) == 0

    for label in ('first', 'second', 'third'):
        assert (tmp_path / f"cache-base-colors-{label}.json").exists()
    third = json.loads((tmp_path / 'cache-base-colors-third.json').read_text())
    selected = [r.getMessage() for r in caplog.records if r.getMessage().startswith('Selected color:')]
    assert len(selected) == len(third)
    assert {entry['color'] for entry in third} <= {'#ff0000', '#00ff00', '#0000ff'}


def test_main_reports_missing_file(tmp_path, monkeypatch):
    monkeypatch.setenv('ACCENT_DATA_DIR', str(tmp_path))
    monkeypatch.delenv('ACCENT_SAMPLE_LIMIT', raising=False)
    monkeypatch.delenv('ACCENT_LOG_LEVEL', raising=False)
    assert main(['--file', 'missing']) == 1


def test_main_reports_bad_configuration(monkeypatch):
    monkeypatch.setenv('ACCENT_SAMPLE_LIMIT', 'lots')
    assert main([]) == 1
