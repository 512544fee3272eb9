import json
from pathlib import Path

import pytest

from bucket_webp.config import AppConfig, TimeoutConfig, build_run_config, dump_config, load_config


def test_load_config_missing_file_uses_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "absent.toml")
    assert config.runtime.concurrency == 5
    assert config.timeouts == TimeoutConfig(head_s=8.0, get_s=15.0, put_s=15.0, list_s=10.0)
    assert config.webp.quality == 65
    assert config.target.extension == ".webp"


def test_load_config_reads_sections(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        "[runtime]\nconcurrency = 3\nfailed_keys_file = 'out/failed.txt'\n"
        "[timeouts]\nget_s = 30\n"
        "[target]\nvisibility = ''\n"
        "[storage]\nmax_pool_connections = 2\n",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.runtime.concurrency == 3
    assert config.runtime.failed_keys_file == Path("out/failed.txt")
    assert config.timeouts.get_s == 30.0
    assert config.timeouts.head_s == 8.0
    assert config.target.visibility is None
    assert config.storage.max_pool_connections == 2


def test_run_config_overrides_and_normalizes() -> None:
    app = AppConfig()
    run = app.run_config(include_prefix=" img ", exclude_prefixes=["img/raw//, img/tmp", "img/raw/"])
    assert run.concurrency == 5
    assert run.include_prefix == "img/"
    assert run.exclude_prefixes == ("img/raw/", "img/tmp/")
    assert app.run_config(concurrency=2).concurrency == 2


def test_blank_include_means_all() -> None:
    assert build_run_config(include_prefix="  ").include_prefix is None


@pytest.mark.parametrize("concurrency", [0, -1])
def test_rejects_non_positive_concurrency(concurrency: int) -> None:
    with pytest.raises(ValueError):
        build_run_config(concurrency=concurrency)


def test_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValueError):
        build_run_config(timeouts=TimeoutConfig(put_s=0))


def test_dump_config_round_trips_values() -> None:
    payload = json.loads(dump_config(AppConfig()))
    assert payload["runtime"]["concurrency"] == 5
    assert payload["target"]["visibility"] == "public-read"


def test_dump_config_lists_only_applied_webp_options() -> None:
    payload = json.loads(dump_config(AppConfig()))
    assert set(payload["webp"]) == {"quality", "effort", "lossless"}
    assert payload["storage"]["max_pool_connections"] is None
