"""
Tests for config loading, logging setup and color helpers.
"""

import json
import logging
import logging.handlers

import numpy as np
import pytest

from utils import blend_colors, load_config, parse_hex_color, setup_logging


class TestConfig:

    def test_load_config(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"simulation_parameters": {"seed": 3}}))
        assert load_config(str(path)) == {"simulation_parameters": {"seed": 3}}

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "absent.json"))

    def test_bad_json_raises(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        with pytest.raises(json.JSONDecodeError):
            load_config(str(path))

    def test_setup_logging_creates_log_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            setup_logging({"logging": {"level": "debug", "log_file": str(log_file)}})
            assert root.level == logging.DEBUG
            assert any(isinstance(h, logging.handlers.RotatingFileHandler) for h in root.handlers)
            assert log_file.parent.is_dir()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestColors:

    @pytest.mark.parametrize("text, expected", [
        ("#1100ff", (17, 0, 255)),
        ("ff8552", (255, 133, 82)),
        ("#fff", (255, 255, 255)),
    ])
    def test_parse_hex_color(self, text, expected):
        assert parse_hex_color(text) == expected

    @pytest.mark.parametrize("text", ["#12345", "#gggggg", ""])
    def test_invalid_hex_color(self, text):
        with pytest.raises(ValueError):
            parse_hex_color(text)

    def test_blend_endpoints(self):
        path, impact = (17, 0, 255), (255, 133, 82)
        np.testing.assert_allclose(blend_colors(path, impact, 0.0), path)
        np.testing.assert_allclose(blend_colors(path, impact, 1.0), impact)
        np.testing.assert_allclose(blend_colors(path, impact, 0.5), [136.0, 66.5, 168.5])

    def test_blend_clamps_and_vectorizes(self):
        blended = blend_colors((0, 0, 0), (100, 200, 50), np.array([-1.0, 0.25, 3.0]))
        assert blended.shape == (3, 3)
        np.testing.assert_allclose(blended, [[0, 0, 0], [25, 50, 12.5], [100, 200, 50]])
