import pytest
import yaml

from sopsage_core.errors import ConfigExistsError, SOPSConfigError
from sopsage_core.sops import CreationRule, SOPSConfig, read_sops_config, write_sops_config

RECIPIENTS = "age1first,\nage1second"


def make_config(count=1):
    return SOPSConfig(
        creation_rules=[
            CreationRule(path_regex=r"^.+\.enc\.ya?ml$", age=RECIPIENTS) for _ in range(count)
        ]
    )


@pytest.mark.asyncio
async def test_write_then_read_roundtrip(tmp_path):
    path = tmp_path / ".sops.yaml"
    await write_sops_config(path, make_config(2), overwrite=True)

    config = await read_sops_config(path)

    assert len(config.creation_rules) == 2
    rule = config.creation_rules[0]
    assert rule.path_regex == r"^.+\.enc\.ya?ml$"
    assert rule.encrypted_regex == "^(data|stringData)$"
    assert rule.age == RECIPIENTS


@pytest.mark.asyncio
async def test_written_document_layout(tmp_path):
    path = tmp_path / ".sops.yaml"
    await write_sops_config(path, make_config())

    text = path.read_text()
    assert text.startswith("creation_rules:\n- path_regex: ")
    assert "  age: |-\n" in text
    assert text.index("path_regex") < text.index("encrypted_regex") < text.index("age:")
    assert yaml.safe_load(text)["creation_rules"][0]["age"] == RECIPIENTS


@pytest.mark.asyncio
async def test_overwrite_guard_leaves_file_untouched(tmp_path):
    path = tmp_path / ".sops.yaml"
    path.write_text("creation_rules: []\n")

    with pytest.raises(ConfigExistsError):
        await write_sops_config(path, make_config())

    assert path.read_text() == "creation_rules: []\n"


@pytest.mark.asyncio
async def test_overwrite_replaces_content(tmp_path):
    path = tmp_path / ".sops.yaml"
    await write_sops_config(path, make_config(1))
    first = path.read_text()

    await write_sops_config(path, make_config(2), overwrite=True)

    assert path.read_text() != first
    assert len((await read_sops_config(path)).creation_rules) == 2


@pytest.mark.asyncio
async def test_write_creates_directories(tmp_path):
    path = tmp_path / "first-dir" / "second-dir" / ".sops.yaml"
    await write_sops_config(path, make_config())
    assert path.is_file()


@pytest.mark.asyncio
async def test_unknown_fields_survive_rewrite(tmp_path):
    path = tmp_path / ".sops.yaml"
    path.write_text(
        "creation_rules:\n"
        "- path_regex: secrets/.*\n"
        "  age: age1abc\n"
        "  key_groups:\n"
        "  - pgp: [FINGERPRINT]\n"
        "stores:\n"
        "  yaml:\n"
        "    indent: 2\n"
    )

    config = await read_sops_config(path)
    assert config.creation_rules[0].encrypted_regex == "^(data|stringData)$"
    await write_sops_config(path, config, overwrite=True)

    data = yaml.safe_load(path.read_text())
    assert data["stores"] == {"yaml": {"indent": 2}}
    assert data["creation_rules"][0]["key_groups"] == [{"pgp": ["FINGERPRINT"]}]


@pytest.mark.asyncio
@pytest.mark.parametrize("selector", ["unencrypted_regex", "encrypted_suffix", "unencrypted_suffix"])
async def test_other_field_selector_is_not_joined_by_default_regex(tmp_path, selector):
    path = tmp_path / ".sops.yaml"
    path.write_text(f"creation_rules:\n- path_regex: .*\n  {selector}: ^metadata$\n  age: age1abc\n")

    config = await read_sops_config(path)
    assert config.creation_rules[0].encrypted_regex is None
    await write_sops_config(path, config, overwrite=True)

    rule = yaml.safe_load(path.read_text())["creation_rules"][0]
    assert rule == {"path_regex": ".*", "age": "age1abc", selector: "^metadata$"}


def test_explicit_encrypted_regex_is_kept():
    rule = CreationRule.from_dict({"path_regex": ".*", "encrypted_regex": "^secret$", "age": "age1abc"})
    assert rule.encrypted_regex == "^secret$"
    assert rule.to_dict()["encrypted_regex"] == "^secret$"


def test_recipients_are_split_and_deduplicated():
    config = SOPSConfig(
        creation_rules=[
            CreationRule(path_regex="a", age="age1one,\nage1two"),
            CreationRule(path_regex="b", age="age1two, age1three"),
        ]
    )
    assert config.recipients() == ["age1one", "age1two", "age1three"]


def test_empty_document_is_empty_config():
    assert SOPSConfig.from_yaml("").creation_rules == []


@pytest.mark.parametrize(
    "text",
    [
        "- just\n- a list\n",
        "creation_rules: not-a-list\n",
        "creation_rules:\n- age: age1abc\n",
        "creation_rules: [\n",
    ],
)
def test_invalid_documents(text):
    with pytest.raises(SOPSConfigError):
        SOPSConfig.from_yaml(text)


@pytest.mark.asyncio
async def test_read_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        await read_sops_config(tmp_path / "missing.yaml")
