"""Test config resolution and validation with Pydantic."""

import pytest
from pydantic import ValidationError

from arraydata.schemas import ParamConfig, UserConfig, CLIConfig, InternalConfig
from arraydata.schemas.resolve import resolve_config, deep_merge

pytestmark = pytest.mark.unit


class TestConfigResolution:
    """Test resolve_config() precedence and merging."""

    def test_resolve_config_all_defaults(self):
        """Resolving with no user/CLI overrides uses all ParamConfig defaults."""
        config = resolve_config(ParamConfig(), None, None)

        assert isinstance(config, InternalConfig)
        assert config.parser.max_header_lines == 1000
        assert config.parser.encoding == "latin-1"
        assert config.output.null_token == "null"
        assert config.pipeline.data_type == "raw"
        assert config.pipeline.output_dir is None
        assert config.pipeline.contract_policy == "fail_fast"
        assert config.output.sort_run_rows == 100_000

    def test_generic_format_is_tried_first(self, internal_config):
        """The format table keeps Generic ahead of every vendor layout."""
        assert next(iter(internal_config.formats)) == "Generic"
        assert internal_config.formats["GenePix"] == ["Block", "Column", "Row", "X", "Y"]

    def test_user_config_overrides_param_config(self):
        """UserConfig values override ParamConfig defaults."""
        user = UserConfig(MAX_HEADER_LINES=50, NULL_TOKEN="NA")
        config = resolve_config(ParamConfig(), user, None)

        assert config.parser.max_header_lines == 50
        assert config.output.null_token == "NA"

    def test_cli_overrides_user(self, temp_dir):
        """Full precedence: CLI > User > Param."""
        user = UserConfig(OUTPUT_DIR=str(temp_dir / "user"), WORKERS=2)
        cli = CLIConfig(output_dir=str(temp_dir / "cli"))
        config = resolve_config(ParamConfig(), user, cli)

        assert config.pipeline.output_dir == str(temp_dir / "cli")
        assert config.pipeline.workers == 2

    def test_dict_inputs_are_validated(self):
        """Plain dicts are accepted at every layer."""
        config = resolve_config({}, {"DATA_TYPE": "normalized"}, {"log_level": "DEBUG"})

        assert config.pipeline.data_type == "normalized"
        assert config.logging.level == "DEBUG"

    def test_internal_config_is_frozen(self, internal_config):
        """Runtime config cannot be mutated after resolution."""
        with pytest.raises(ValidationError):
            internal_config.run_id = "changed"


class TestLookupTables:
    """User tables merge over the bundled defaults."""

    def test_replace_format_headings(self, make_config):
        config = make_config(FORMATS={"CodeLink": ["Feature_id"]})

        assert config.formats["CodeLink"] == ["Feature_id"]
        assert next(iter(config.formats)) == "Generic"
        assert config.formats["GenePix"] == ["Block", "Column", "Row", "X", "Y"]

    def test_unknown_format_is_rejected(self, make_config):
        """A layout without a transform cannot be configured."""
        with pytest.raises(ValidationError, match="No transform"):
            make_config(FORMATS={"Bogus": ["Spot"]})

    def test_invalid_heading_pattern_is_rejected(self, make_config):
        with pytest.raises(ValidationError, match="Invalid heading pattern"):
            make_config(FORMATS={"GEO": ["ID_REF("]})

    def test_add_quantitation_type(self, make_config):
        config = make_config(QUANTITATION_TYPES={"GenePix": {"My Ratio": {"datatype": "float"}}})

        assert config.quantitation_types["GenePix"]["My Ratio"].datatype == "float"
        assert "F635 Median" in config.quantitation_types["GenePix"]

    def test_bad_quantitation_datatype_is_rejected(self, make_config):
        with pytest.raises(ValidationError):
            make_config(QUANTITATION_TYPES={"GenePix": {"X": {"datatype": "complex"}}})


class TestParamValidation:
    """ParamConfig field validators."""

    def test_generic_must_come_first(self):
        with pytest.raises(ValidationError, match="Generic"):
            ParamConfig(formats={"GEO": ["ID_REF"]})

    def test_fgem_formats_must_be_known(self):
        with pytest.raises(ValidationError, match="fgem_formats"):
            ParamConfig(fgem_formats=["Missing"])

    def test_sampled_rows_sorted_and_unique(self):
        param = ParamConfig(statistics={"sampled_rows": [9, 3, 3, 4]})
        assert param.statistics.sampled_rows == [3, 4, 9]

    def test_sampled_rows_are_one_based(self):
        with pytest.raises(ValidationError):
            ParamConfig(statistics={"sampled_rows": [0, 3]})

    def test_workers_bounds(self):
        with pytest.raises(ValidationError):
            ParamConfig(pipeline={"workers": 0})
        with pytest.raises(ValidationError):
            ParamConfig(pipeline={"workers": 65})

    def test_sort_run_rows_positive(self):
        with pytest.raises(ValidationError):
            ParamConfig(output={"sort_run_rows": 0})

    def test_unknown_contract_policy_rejected(self, make_config):
        with pytest.raises(ValidationError):
            make_config(CONTRACT_POLICY="ignore")

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            ParamConfig(unknown_section={})


class TestDeepMerge:

    def test_nested_values_merge(self):
        base = {"a": 1, "b": {"c": 2, "d": 3}}
        merged = deep_merge(base, {"b": {"d": 4, "e": 5}, "f": 6})
        assert merged == {"a": 1, "b": {"c": 2, "d": 4, "e": 5}, "f": 6}

    def test_base_is_not_mutated(self):
        base = {"b": {"c": 2}}
        deep_merge(base, {"b": {"c": 3}})
        assert base == {"b": {"c": 2}}

    def test_new_keys_keep_order(self):
        merged = deep_merge({"x": {"Generic": 1, "GEO": 2}}, {"x": {"GEO": 3, "Illumina": 4}})
        assert list(merged["x"]) == ["Generic", "GEO", "Illumina"]
