"""Tests for configuration loading and logging setup."""

import logging

import pytest
import yaml


class TestLoadConfig:
    """Tests for load_config and ConfigLoader."""

    def test_defaults(self):
        """The packaged defaults are loaded without a config file."""
        from src.utils.config_loader import get_nested, load_config

        config = load_config()

        assert get_nested(config, "sensor.frame_rate") == 10.0
        assert get_nested(config, "lidar.shrink_factor") == pytest.approx(0.10)
        assert get_nested(config, "camera.min_distance") == 100.0
        assert get_nested(config, "matching.unmatched_policy") == "first"
        assert get_nested(config, "keypoints.detector") == "ORB"

    def test_file_merged_over_defaults(self, tmp_path):
        """A user file overrides only the keys it sets."""
        from src.utils.config_loader import get_nested, load_config

        path = tmp_path / "custom.yaml"
        path.write_text(yaml.safe_dump({"lidar": {"lane_width": 3.5}}))

        config = load_config(path)

        assert get_nested(config, "lidar.lane_width") == 3.5
        assert get_nested(config, "lidar.shrink_factor") == pytest.approx(0.10)
        assert get_nested(config, "lidar.crop.max_x") == 20.0

    def test_overrides_applied_last(self, tmp_path):
        """Overrides win over both defaults and file."""
        from src.utils.config_loader import get_nested, load_config

        path = tmp_path / "custom.yaml"
        path.write_text(yaml.safe_dump({"keypoints": {"detector": "BRISK"}}))

        config = load_config(path, overrides={"keypoints": {"detector": "AKAZE"}})

        assert get_nested(config, "keypoints.detector") == "AKAZE"
        assert get_nested(config, "keypoints.matcher") == "BF"

    def test_missing_file(self, tmp_path):
        from src.utils.config_loader import load_config

        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_non_mapping_root(self, tmp_path):
        """A YAML file whose root is not a mapping is rejected."""
        from src.utils.config_loader import ConfigLoader

        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")

        with pytest.raises(ValueError):
            ConfigLoader().load(path)

    def test_include(self, tmp_path):
        """String values '!include <file>' are replaced by the file's content."""
        from src.utils.config_loader import ConfigLoader

        (tmp_path / "crop.yaml").write_text(yaml.safe_dump({"max_x": 30.0}))
        path = tmp_path / "main.yaml"
        path.write_text(yaml.safe_dump({"lidar": {"crop": "!include crop.yaml"}}))

        config = ConfigLoader().load(path)

        assert config["lidar"]["crop"] == {"max_x": 30.0}

    def test_merge_is_deep(self):
        from src.utils.config_loader import ConfigLoader

        merged = ConfigLoader().merge(
            {"a": {"b": 1, "c": 2}, "d": 3},
            {"a": {"c": 20}, "e": 5},
        )

        assert merged == {"a": {"b": 1, "c": 20}, "d": 3, "e": 5}

    def test_get_nested_default(self):
        from src.utils.config_loader import get_nested

        config = {"a": {"b": 1}}

        assert get_nested(config, "a.b") == 1
        assert get_nested(config, "a.x", 7) == 7
        assert get_nested(config, "a.b.c") is None


class TestLogging:
    """Tests for logger setup."""

    def test_setup_logger_from_config(self, tmp_path):
        """Level and log file come from the logging section."""
        from src.utils.logger import setup_logger_from_config

        log_file = tmp_path / "logs" / "ttc.log"
        logger = setup_logger_from_config(
            {"logging": {"level": "DEBUG", "log_file": str(log_file)}},
            name="ttc_test_config",
        )
        logger.debug("hello")
        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.DEBUG
        assert "hello" in log_file.read_text()

    def test_mixin_logger_name(self):
        """Classes log under ttc.<ClassName>."""
        from src.fusion.ttc import LidarTTCEstimator

        assert LidarTTCEstimator().logger.name == "ttc.LidarTTCEstimator"

    def test_child_logger_has_no_own_handlers(self):
        """Child loggers propagate to the ttc logger."""
        from src.utils.logger import get_logger

        logger = get_logger("ttc.SomeComponent")

        assert logger.handlers == []
        assert logger.propagate
