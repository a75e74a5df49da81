"""Tests for mimeident.config."""

import os

import pytest

from mimeident.config import (
    ConfigSource,
    build_repository,
    load_config,
    parse_rules,
    parse_xml,
    parse_yaml,
)
from mimeident.errors import ConfigError
from mimeident.mediatype import MediaType


class TestConfigSource:
    def test_neither_is_default(self):
        assert ConfigSource().is_default

    def test_both_is_an_error(self):
        with pytest.raises(ConfigError):
            ConfigSource(body="types: []", path="/tmp/rules.yaml")

    def test_blank_values_are_ignored(self):
        src = ConfigSource(body="   ", path="")
        assert src.is_default

    def test_describe(self):
        assert ConfigSource().describe() == "<built-in>"
        assert ConfigSource(body="x").describe() == "<inline>"
        assert ConfigSource(path="rules.yaml").describe() == "rules.yaml"


class TestLoadConfig:
    def test_default_config_loads(self):
        repo = load_config()
        assert len(repo) > 20
        assert MediaType.parse("application/gzip") in repo

    def test_default_gzip_extensions(self):
        repo = load_config()
        assert repo.extensions("application/gzip")[:2] == (".tgz", ".gz")

    def test_custom_config(self, tmp_path, custom_yaml):
        p = tmp_path / "rules.yaml"
        p.write_text(custom_yaml)
        repo = load_config(p)
        assert [str(t) for t in repo.types] == [
            "application/x-alpha", "application/x-beta", "application/x-gamma",
        ]
        assert repo.preferred_extension("application/x-beta") == ".beta"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "nope.yaml")


class TestParseYaml:
    def test_full_entry(self):
        repo = parse_yaml("""\
types:
  - type: application/x-foo
    description: Foo files
    aliases: [application/x-old-foo]
    extensions: [foo, .fo]
    globs:
      - "*.foo"
      - {pattern: "FOOFILE", case_sensitive: true}
    magic:
      - priority: 60
        match:
          - {type: hex, value: "46 4f 4f", offset: "0:4"}
""")
        foo = MediaType.parse("application/x-foo")
        assert repo.extensions(foo) == (".foo", ".fo")
        assert repo.canonical("application/x-old-foo") == foo
        assert repo.definition(foo).description == "Foo files"
        assert repo.signatures[0].priority == 60
        assert repo.globs[1].case_sensitive

    def test_invalid_yaml(self):
        with pytest.raises(ConfigError):
            parse_yaml("types: [unclosed")

    def test_missing_types_list(self):
        with pytest.raises(ConfigError):
            parse_yaml("formats: []")

    def test_bad_hex_names_rule(self):
        with pytest.raises(ConfigError) as exc:
            parse_yaml("""\
types:
  - type: application/x-foo
    magic:
      - match:
          - {type: hex, value: "zz"}
""")
        assert exc.value.rule == "application/x-foo magic[0]"

    def test_bad_glob(self):
        with pytest.raises(ConfigError) as exc:
            parse_yaml("""\
types:
  - type: application/x-foo
    globs: ["dir/*.foo"]
""")
        assert exc.value.rule == "application/x-foo"

    def test_unbalanced_glob(self):
        with pytest.raises(ConfigError):
            parse_yaml("""\
types:
  - type: application/x-foo
    globs: ["*.[ab"]
""")

    def test_bad_priority(self):
        with pytest.raises(ConfigError):
            parse_yaml("""\
types:
  - type: application/x-foo
    magic:
      - priority: 500
        match:
          - value: FOO
""")

    def test_magic_without_clauses(self):
        with pytest.raises(ConfigError):
            parse_yaml("""\
types:
  - type: application/x-foo
    magic:
      - priority: 50
""")

    def test_dangling_parent(self):
        with pytest.raises(ConfigError) as exc:
            parse_yaml("""\
types:
  - type: application/x-foo
    parent: application/x-missing
""")
        assert "undeclared" in exc.value.reason

    def test_duplicate_type(self):
        with pytest.raises(ConfigError):
            parse_yaml("""\
types:
  - type: application/x-foo
  - type: Application/X-Foo
""")

    def test_invalid_media_type(self):
        with pytest.raises(ConfigError):
            parse_yaml("types:\n  - type: not-a-type\n")

    def test_unknown_container_format(self):
        with pytest.raises(ConfigError):
            parse_yaml("""\
types:
  - type: application/x-foo
    containers:
      - {format: rar, entry: foo}
""")


class TestParseXml:
    def test_mime_info(self, flowfile_xml):
        repo = parse_xml(flowfile_xml)
        v3 = MediaType.parse("application/flowfile-v3")
        assert repo.canonical("application/x-flowfile-v3") == v3
        assert repo.preferred_extension(v3) == ".pkg"
        assert repo.definition(v3).description == "NiFi FlowFile package v3"
        assert repo.is_a("application/flowfile-v1", "application/x-tar")

    def test_wrong_root(self):
        with pytest.raises(ConfigError):
            parse_xml("<mime-types/>")

    def test_malformed(self):
        with pytest.raises(ConfigError):
            parse_xml("<mime-info><mime-type>")

    def test_regex_glob_rejected(self):
        with pytest.raises(ConfigError):
            parse_xml('<mime-info><mime-type type="a/b">'
                      '<glob pattern="^x$" isregex="true"/></mime-type></mime-info>')

    def test_parse_rules_dispatch(self, flowfile_xml, custom_yaml):
        assert MediaType.parse("application/flowfile-v3") in parse_rules(flowfile_xml)
        assert MediaType.parse("application/x-alpha") in parse_rules(custom_yaml)


class TestBuildRepository:
    def test_default_is_built_once(self):
        assert build_repository() is build_repository(ConfigSource())

    def test_inline_is_cached_per_body(self, custom_yaml):
        first = build_repository(ConfigSource(body=custom_yaml))
        assert build_repository(ConfigSource(body=custom_yaml)) is first
        assert build_repository() is not first

    def test_file_rebuilt_when_modified(self, tmp_path, custom_yaml):
        p = tmp_path / "rules.yaml"
        p.write_text(custom_yaml)
        os.utime(p, ns=(1_000_000_000, 1_000_000_000))
        first = build_repository(ConfigSource(path=str(p)))
        assert build_repository(ConfigSource(path=str(p))) is first

        p.write_text("types:\n  - type: application/x-only\n")
        os.utime(p, ns=(2_000_000_000, 2_000_000_000))
        second = build_repository(ConfigSource(path=str(p)))
        assert second is not first
        assert [str(t) for t in second.types] == ["application/x-only"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            build_repository(ConfigSource(path=str(tmp_path / "missing.yaml")))

    def test_invalid_body_raises_every_time(self):
        for _ in range(2):
            with pytest.raises(ConfigError):
                build_repository(ConfigSource(body="types: 5"))
