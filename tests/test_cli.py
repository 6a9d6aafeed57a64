"""Integration tests for the command line entry point."""

import argparse
import json

import pandas as pd
import pytest
import yaml

from rule_dedupe.cli import main, parse_contact_ids, parse_match_params


class TestCLIIntegration:
    """Run the CLI end to end on small CSV tables."""

    @pytest.fixture
    def data_dir(self, tmp_path, contacts, emails):
        directory = tmp_path / "data"
        directory.mkdir()
        contacts.to_csv(directory / "contact.csv", index=False)
        emails.to_csv(directory / "email.csv", index=False)
        return directory

    @pytest.fixture
    def rules_file(self, tmp_path):
        rules = {
            "rule_groups": [
                {
                    "id": 1,
                    "contact_type": "Individual",
                    "used": "Unsupervised",
                    "threshold": 20,
                    "rules": [
                        {"id": 1, "rule_table": "contact", "rule_field": "last_name", "rule_weight": 7},
                        {"id": 2, "rule_table": "email", "rule_field": "email", "rule_weight": 20},
                    ],
                },
            ],
        }
        path = tmp_path / "rules.yaml"
        path.write_text(yaml.safe_dump(rules))
        return path

    @pytest.fixture
    def config_file(self, tmp_path):
        config = {
            "engine": {"duckdb": {"threads": 1}},
            "runner": {"workers": 1, "backend": "sequential"},
            "schema": {"resolver": "schema", "fields": {"contact": {"last_name": "string"}}},
            "logging": {"level": "WARNING"},
        }
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.safe_dump(config))
        return path

    def args(self, data_dir, rules_file, config_file, output, *extra):
        return [
            "--data-dir",
            str(data_dir),
            "--rules",
            str(rules_file),
            "--config",
            str(config_file),
            "--output",
            str(output),
            *extra,
        ]

    def test_writes_candidate_pairs(self, tmp_path, data_dir, rules_file, config_file):
        output = tmp_path / "out" / "pairs.csv"

        main(self.args(data_dir, rules_file, config_file, output))

        pairs = pd.read_csv(output)
        assert list(pairs.columns) == ["rule_id", "id1", "id2", "weight", "is_exception"]
        assert pairs[["rule_id", "id1", "id2", "weight"]].values.tolist() == [
            [1, 1, 2, 7],
            [1, 3, 4, 7],
            [2, 1, 2, 20],
        ]
        assert not pairs["is_exception"].any()

    def test_probe_and_subset_flags(self, tmp_path, data_dir, rules_file, config_file):
        output = tmp_path / "pairs.csv"

        main(
            self.args(
                data_dir,
                rules_file,
                config_file,
                output,
                "--match-params",
                json.dumps({"contact": {"last_name": "Jones"}}),
                "--contact-ids",
                "3,4",
            ),
        )

        assert pd.read_csv(output)[["id1", "id2"]].values.tolist() == [[3, 4]]

    def test_parquet_output(self, tmp_path, data_dir, rules_file, config_file):
        output = tmp_path / "pairs.parquet"

        main(self.args(data_dir, rules_file, config_file, output, "--exclude-exceptions"))

        pairs = pd.read_parquet(output)
        assert len(pairs) == 3
        assert "is_exception" not in pairs.columns

    def test_missing_data_dir_exits(self, tmp_path, rules_file, config_file):
        with pytest.raises(SystemExit) as excinfo:
            main(self.args(tmp_path / "nope", rules_file, config_file, tmp_path / "pairs.csv"))
        assert excinfo.value.code == 1

    def test_invalid_rule_config_exits(self, tmp_path, data_dir, config_file):
        rules = tmp_path / "bad_rules.yaml"
        rules.write_text(yaml.safe_dump({"rule_groups": [{"contact_type": "Robot", "rules": []}]}))

        with pytest.raises(SystemExit) as excinfo:
            main(self.args(data_dir, rules, config_file, tmp_path / "pairs.csv"))
        assert excinfo.value.code == 1

    def test_missing_rule_group_exits(self, tmp_path, data_dir, rules_file, config_file):
        with pytest.raises(SystemExit) as excinfo:
            main(self.args(data_dir, rules_file, config_file, tmp_path / "pairs.csv", "--used", "General"))
        assert excinfo.value.code == 1


class TestArgumentParsing:
    def test_contact_ids(self):
        assert parse_contact_ids("1, 2,3,") == [1, 2, 3]
        assert parse_contact_ids("") is None

    def test_inline_match_params(self):
        assert parse_match_params('{"email": {"email": "a@example.org"}}') == {"email": {"email": "a@example.org"}}

    def test_match_params_file(self, tmp_path):
        path = tmp_path / "probe.json"
        path.write_text(json.dumps({"contact": {"last_name": "Smith"}}))

        assert parse_match_params(str(path)) == {"contact": {"last_name": "Smith"}}

    def test_match_params_must_be_nested(self):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_match_params('{"last_name": "Smith"}')
