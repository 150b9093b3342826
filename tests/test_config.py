"""Training configuration tests."""

import pytest

from cascade_classifier.errors import ConfigurationError
from cascade_classifier.utils.config import (
    FeatureSelection,
    SelectionMetric,
    SvmType,
    TrainingConfig,
    get_config,
    load_config,
)


@pytest.mark.unit
class TestTrainingConfig:
    """Tests for TrainingConfig construction and validation."""

    def test_defaults(self):
        config = TrainingConfig().validate()

        assert config.folds == 6
        assert config.complexity_penalty == 0.003
        assert config.svm_type == SvmType.NU
        assert config.feature_selection == FeatureSelection.BACKWARD
        assert config.selection_metric == SelectionMetric.WEIGHTED
        assert config.cascade_min_removed == 150
        assert config.min_examples_per_class == 20

    def test_strings_become_enums(self):
        config = TrainingConfig(svm_type="c", feature_selection="forward", selection_metric="bsr")
        assert config.svm_type is SvmType.C
        assert config.feature_selection is FeatureSelection.FORWARD
        assert config.selection_metric is SelectionMetric.BSR

    def test_unknown_enum_value(self):
        with pytest.raises(ConfigurationError):
            TrainingConfig(feature_selection="sideways")

    @pytest.mark.parametrize("kwargs", [
        {"folds": 1},
        {"neg_relative_weight": 0},
        {"nu_lo": 0.5, "nu_hi": 0.4},
        {"log_gamma_lo": 5.0, "log_gamma_hi": 5.0},
        {"feature_selection": "fixed"},
        {"min_examples_per_class": 3},
        {"boundary_step": 0},
        {"n_workers": 0},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError) as exc_info:
            TrainingConfig(**kwargs).validate()
        assert exc_info.value.data["problems"]

    def test_workers_from_environment(self, monkeypatch):
        monkeypatch.setenv("CASCADE_WORKERS", "3")
        assert TrainingConfig().n_workers == 3


@pytest.mark.unit
class TestConfigFiles:
    """Tests for YAML and dict round trips."""

    def test_yaml_round_trip(self, tmp_path):
        config = TrainingConfig(folds=4, feature_selection="fixed", fixed_subset=[2, 0], svm_type="c")
        path = tmp_path / "config.yaml"

        config.to_yaml(path)
        loaded = TrainingConfig.from_yaml(path)

        assert loaded == config

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            TrainingConfig.from_dict({"folds": 4, "fold": 5})
        assert exc_info.value.data["keys"] == ["fold"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            TrainingConfig.from_yaml(tmp_path / "absent.yaml")

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ConfigurationError):
            TrainingConfig.from_yaml(path)

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert TrainingConfig.from_yaml(path) == TrainingConfig()

    def test_load_config_sets_default(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("folds: 5\n")

        load_config(path)
        try:
            assert get_config().folds == 5
        finally:
            load_config()
        assert get_config().folds == 6
