import pytest

from readwfs.acquisition.exceptions import InputError
from readwfs.acquisition.models import DEFAULT_CONFIG
from readwfs.config import load_config


def test_missing_file_returns_defaults(tmp_path):
    assert load_config(tmp_path / "absent.yaml") is DEFAULT_CONFIG


def test_loads_nested_settings(tmp_path):
    path = tmp_path / "readwfs.yaml"
    path.write_text(
        "paging:\n"
        "  page_size: 250\n"
        "  force_server_paging: false\n"
        "timeout:\n"
        "  read: 90\n"
        "user_agent: my-agent/2.0\n"
        "count_query_enabled: false\n"
    )

    config = load_config(path)

    assert config.paging.page_size == 250
    assert config.paging.force_server_paging is False
    assert config.paging.wfs_page_size == 1000
    assert config.timeout.read == 90
    assert config.timeout.connect == 10
    assert config.user_agent == "my-agent/2.0"
    assert config.count_query_enabled is False


def test_empty_file_gives_default_values(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert load_config(path) == DEFAULT_CONFIG


@pytest.mark.parametrize(
    "content",
    [
        "paging: [unclosed\n",
        "- just\n- a list\n",
        "paging:\n  page_size: 0\n",
        "timeout:\n  read: -5\n",
    ],
)
def test_invalid_config_raises_input_error(tmp_path, content):
    path = tmp_path / "bad.yaml"
    path.write_text(content)
    with pytest.raises(InputError):
        load_config(path)


def test_shipped_example_config_is_valid():
    from pathlib import Path

    path = Path(__file__).resolve().parent.parent / "config" / "readwfs.yaml"
    config = load_config(path)
    assert config.paging.wfs_page_size > 0
