"""
Tests for configuration validation and JSON persistence.
"""

import json

import numpy as np
import pytest

from streetfield.config import (
    Config,
    FieldConfig,
    GridConfig,
    SeedConfig,
    SeparationConfig,
    TraceConfig,
    ClipConfig,
    get_config,
    load_config,
)
from streetfield.elements import GridElement, RadialElement
from streetfield.separations import separation_profiles


class TestValidation:
    """Tests for strict type and value checking."""

    def test_defaults_are_valid(self):
        """Test the default configuration validates."""
        config = get_config()
        assert config.backend == "auto"
        assert config.grid.size == 512
        assert config.trace.step_size == pytest.approx(0.2)
        assert config.separation.base_distance == pytest.approx(16.0)

    def test_bool_rejected_for_int(self):
        """Test booleans are not accepted as integers."""
        with pytest.raises(TypeError, match="grid.size"):
            GridConfig(size=True)

    def test_float_rejected_for_int(self):
        """Test floats are not silently truncated."""
        with pytest.raises(TypeError):
            TraceConfig(iterations=2.5)

    def test_non_positive_step_size(self):
        """Test step size must be positive."""
        with pytest.raises(ValueError):
            TraceConfig(step_size=0.0)
        with pytest.raises(ValueError):
            TraceConfig(step_size=-1.0)

    def test_invalid_backend(self):
        """Test unknown backends are rejected."""
        with pytest.raises(ValueError, match="Invalid backend"):
            Config(backend="cuda")

    def test_invalid_seed_mode(self):
        """Test unknown seeding modes are rejected."""
        with pytest.raises(ValueError):
            SeedConfig(mode="grid")

    def test_city_center_coerced(self):
        """Test the city center becomes a float tuple."""
        trace = TraceConfig(city_center=[10, 20])
        assert trace.city_center == (10.0, 20.0)

    def test_city_center_wrong_length(self):
        with pytest.raises(ValueError):
            TraceConfig(city_center=[1.0, 2.0, 3.0])

    def test_step_larger_than_separation_warns(self):
        """Test a warning when the step can jump over the separation distance."""
        with pytest.warns(UserWarning, match="Step size"):
            Config(trace=TraceConfig(step_size=20.0))

    def test_start_tolerance_above_one_warns(self):
        with pytest.warns(UserWarning):
            ClipConfig(start_tolerance=1.5)

    def test_elements_from_dicts(self):
        """Test element dictionaries are converted on validation."""
        cfg = FieldConfig(elements=[{"kind": "radial", "center": [1.0, 2.0]}])
        assert cfg.elements == [RadialElement((1.0, 2.0))]

    def test_elements_wrong_type(self):
        with pytest.raises(TypeError):
            FieldConfig(elements=[(1.0, 2.0)])


class TestSeparation:
    """Tests for separation profile configuration."""

    def test_constant(self):
        sep = SeparationConfig().constant(12.0)
        assert sep.as_function()(np.array([5.0, 5.0])) == pytest.approx(12.0)

    def test_center_scaled_grows_outwards(self):
        sep = SeparationConfig().center_scaled(10.0, center=(256.0, 256.0), grid_size=512.0)
        d_sep = sep.as_function()
        assert d_sep(np.array([256.0, 256.0])) == pytest.approx(10.0)
        assert d_sep(np.array([0.0, 0.0])) > d_sep(np.array([200.0, 200.0]))

    def test_failing_profile_raises(self):
        """Test a profile returning a non-positive value fails validation."""
        with pytest.raises(RuntimeError, match="Separation profile failed"):
            SeparationConfig().custom(lambda point, d_sep: -d_sep, d_sep=1.0)


class TestCityCenter:
    """Tests for the city center fallback chain."""

    def test_explicit(self):
        config = Config(trace=TraceConfig(city_center=(1.0, 2.0)))
        assert config.city_center == (1.0, 2.0)

    def test_first_radial_element(self):
        config = Config()
        config.tensor_field.add_grid((10.0, 10.0)).add_radial((200.0, 300.0))
        assert config.city_center == (200.0, 300.0)

    def test_grid_center(self):
        assert Config().city_center == (256.0, 256.0)


class TestSerialization:
    """Tests for JSON save/load."""

    def test_round_trip(self, tmp_path):
        """Test elements and builtin separation profiles survive a round trip."""
        config = get_config()
        config.backend = "numpy"
        config.tensor_field.add_grid((100.0, 100.0), angle=-2.0, length=500.0)
        config.tensor_field.add_radial((200.0, 200.0))
        config.separation.center_scaled(12.0, center=(200.0, 200.0), grid_size=512.0)
        config.trace.iterations = 4

        path = tmp_path / "config.json"
        config.save(str(path))
        loaded = load_config(str(path))

        assert loaded.backend == "numpy"
        assert loaded.trace.iterations == 4
        assert loaded.tensor_field.elements == [
            GridElement((100.0, 100.0), angle=-2.0, length=500.0),
            RadialElement((200.0, 200.0)),
        ]
        assert loaded.separation.fn is separation_profiles.center_scaled
        assert loaded.separation.params == config.separation.params

    def test_version_tag(self):
        data = get_config().to_dict()
        assert data["__version__"] == 1
        assert "__version__" not in data["grid"]

    def test_json_serializable(self):
        """Test the dictionary form is plain JSON."""
        config = get_config()
        config.tensor_field.add_radial((1.0, 1.0))
        json.dumps(config.to_dict())

    def test_unknown_field_rejected(self):
        data = get_config().to_dict()
        data["grid"]["sise"] = 10
        with pytest.raises(ValueError, match="Unknown configuration fields"):
            Config.from_dict(data)

    def test_newer_version_rejected(self):
        data = get_config().to_dict()
        data["__version__"] = 99
        with pytest.raises(ValueError):
            Config.from_dict(data)

    def test_custom_callable_placeholder(self):
        """Test custom callables load as a placeholder that fails on use."""
        def wide_streets(point, d_sep):
            return 2.0 * d_sep

        config = get_config()
        config.separation.custom(wide_streets, d_sep=8.0)
        data = config.to_dict()
        assert data["separation"]["fn"]["type"] == "custom"

        with pytest.warns(UserWarning, match="wide_streets"):
            loaded = Config.from_dict(data)

        with pytest.raises(RuntimeError, match="Custom callable"):
            loaded.separation.as_function()(np.array([1.0, 1.0]))
