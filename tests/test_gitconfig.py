import pytest

from repofan.errors import ConfigKeyError, NotFoundError, ParseError
from repofan.gitconfig import (
    ConfigTree,
    FlatSection,
    QualifiedSection,
    load_config_file,
    parse_lines,
    parse_text,
)

SAMPLE = """\
[core]
\trepositoryformatversion = 0
\tfilemode = true
\tbare = false
; a comment
# another comment
[remote "origin"]
\turl = https://example.com/r.git
\tfetch = +refs/heads/*:refs/remotes/origin/*
[branch "main"]
\tremote = origin
\tmerge = refs/heads/main
"""


def test_remote_url_resolves_through_qualified_section():
    tree = parse_text('[remote "origin"]\n\turl = https://example.com/r.git\n')

    assert tree.to_dict() == {"remote": {"origin": {"url": "https://example.com/r.git"}}}
    assert tree.get_value("remote.origin.url") == "https://example.com/r.git"


def test_parses_flat_and_qualified_sections():
    tree = parse_text(SAMPLE)

    assert tree.sections["core"] == FlatSection(
        {"repositoryformatversion": "0", "filemode": "true", "bare": "false"}
    )
    assert isinstance(tree.sections["remote"], QualifiedSection)
    assert tree.get_value("branch.main.merge") == "refs/heads/main"
    assert tree.subsections("branch") == ["main"]
    assert tree.subsections("core") == []
    assert tree.warnings == []


def test_value_keeps_equals_signs_and_inner_whitespace():
    tree = parse_text('[alias]\n\tlg = log --graph  --format="%h = %s"\n')

    assert tree.get_value("alias.lg") == 'log --graph  --format="%h = %s"'


def test_quotes_are_stripped_from_keys_and_qualifiers_only():
    tree = parse_text('[url "git@host:"]\n\t"insteadOf" = "https://host/"\n')

    assert tree.to_dict() == {"url": {"git@host:": {"insteadOf": '"https://host/"'}}}


def test_qualifier_with_space_keeps_rest_of_header():
    tree = parse_text('[branch "feature x"]\n\tremote = origin\n')

    assert tree.subsections("branch") == ["feature x"]


def test_qualifier_is_case_sensitive():
    tree = parse_text('[remote "Origin"]\n\turl = a\n[remote "origin"]\n\turl = b\n')

    assert tree.get_value("remote.Origin.url") == "a"
    assert tree.get_value("remote.origin.url") == "b"


def test_unrecognized_lines_are_ignored():
    tree = parse_text("[core]\n\tbare\nnot a key\n[broken\n\tkey = value\n")

    # '[broken' is not a header, so the assignment still lands in core
    assert tree.to_dict() == {"core": {"key": "value"}}


def test_repeated_section_merges_and_last_key_wins():
    tree = parse_text("[core]\n\ta = 1\n\tb = 2\n[core]\n\tb = 3\n")

    assert tree.to_dict() == {"core": {"a": "1", "b": "3"}}


def test_mixed_flat_and_qualified_last_write_wins_with_warning(caplog):
    text = '[remote]\n\turl = flat\n[remote "origin"]\n\turl = qualified\n'

    with caplog.at_level("WARNING"):
        tree = parse_text(text, source="mixed")

    assert tree.to_dict() == {"remote": {"origin": {"url": "qualified"}}}
    assert len(tree.warnings) == 1
    assert "remote" in tree.warnings[0]
    assert "mixed" in caplog.text


def test_mixed_qualified_then_flat_keeps_flat():
    tree = parse_text('[remote "origin"]\n\turl = q\n[remote]\n\turl = f\n')

    assert tree.sections["remote"] == FlatSection({"url": "f"})
    assert tree.warnings


def test_key_before_any_section_is_rejected():
    with pytest.raises(ParseError) as excinfo:
        parse_lines(["# header comment", "orphan = 1", "[core]"], source="cfg")

    assert excinfo.value.line == 2
    assert "cfg:2" in str(excinfo.value)


def test_lookup_of_absent_paths_raises_typed_error():
    tree = parse_text(SAMPLE)

    for path in [
        "nosuch.key",
        "core.nosuch",
        "remote.upstream.url",
        "remote.origin.nosuch",
        "core.sub.key",
        "remote.url",
        "core",
        "",
        "core.",
    ]:
        with pytest.raises(ConfigKeyError):
            tree.get_value(path)
        assert not tree.has_value(path)


def test_config_key_error_is_a_not_found_error():
    tree = ConfigTree()

    with pytest.raises(NotFoundError):
        tree.get_value("core.bare")
    with pytest.raises(KeyError):
        tree.get_value("core.bare")


def test_subsection_containing_dots():
    tree = parse_text('[branch "release/1.0"]\n\tremote = origin\n')

    assert tree.get_value("branch.release/1.0.remote") == "origin"
    dotted = parse_text('[url "https://example.com/"]\n\tinsteadOf = ex:\n')
    assert dotted.get_value("url.https://example.com/.insteadOf") == "ex:"


def test_dumps_round_trips():
    tree = parse_text(SAMPLE)

    assert parse_text(tree.dumps()) == tree


def test_round_trip_of_built_tree():
    tree = ConfigTree.from_dict(
        {
            "user": {"name": "Jane Doe", "email": "jane@example.com"},
            "remote": {
                "origin": {"url": "https://example.com/a.git"},
                "fork": {"url": "git@example.com:jane/a.git", "pushurl": "x=y"},
            },
        }
    )

    reparsed = parse_text(tree.dumps())

    assert reparsed == tree
    assert reparsed.get_value("remote.fork.pushurl") == "x=y"


def test_empty_sections_are_dropped_from_built_tree():
    tree = ConfigTree.from_dict(
        {"core": {}, "remote": {"origin": {}, "fork": {"url": "u"}}, "alias": {"x": {}}}
    )

    assert sorted(tree.sections) == ["remote"]
    assert tree.dumps() == '[remote "fork"]\n\turl = u\n'
    assert parse_text(tree.dumps()) == tree
    assert parse_text(ConfigTree.from_dict({"core": {}}).dumps()) == ConfigTree.from_dict({"core": {}})


def test_empty_tree_dumps_to_empty_string():
    assert ConfigTree().dumps() == ""
    assert parse_text("") == ConfigTree()


def test_from_dict_rejects_non_mapping_section():
    with pytest.raises(ValueError):
        ConfigTree.from_dict({"core": "bare"})


def test_load_config_file(tmp_path):
    path = tmp_path / "config"
    path.write_text(SAMPLE)

    tree = load_config_file(path)

    assert tree.get_value("core.bare") == "false"


def test_load_config_file_missing_raises_parse_error(tmp_path):
    missing = tmp_path / "nope" / "config"

    with pytest.raises(ParseError) as excinfo:
        load_config_file(missing)

    assert str(missing) in str(excinfo.value)
