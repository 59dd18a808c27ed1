from pathlib import Path

import pytest
import yaml

from fleet_tuner.core.errors import InventoryError
from fleet_tuner.core.settings import HeapSize, MemorySize, SettingKey, SettingsMap
from fleet_tuner.output.hiera import HieraStore


def sample_settings() -> SettingsMap:
    return SettingsMap(
        {
            SettingKey.worker_pool_size: 4,
            SettingKey.controller_heap: HeapSize(3072),
            SettingKey.database_buffer: MemorySize(4096, "MB"),
        }
    )


def test_write_node_and_common(tmp_path: Path):
    store = HieraStore(directory=tmp_path)

    node_path = store.write_node("primary.example.com", sample_settings())
    common_path = store.write_common(SettingsMap({SettingKey.broker_heap: 512}))

    assert node_path == tmp_path / "nodes" / "primary.example.com.yaml"
    data = yaml.safe_load(node_path.read_text(encoding="utf-8"))
    assert data["puppet_enterprise::profile::master::java_args"] == {"Xms": "3072m", "Xmx": "3072m"}
    assert data["puppet_enterprise::profile::database::shared_buffers"] == "4096MB"
    assert yaml.safe_load(common_path.read_text(encoding="utf-8")) == {
        "puppet_enterprise::profile::amq::broker::heap_mb": 512
    }


def test_empty_maps_are_not_written(tmp_path: Path):
    store = HieraStore(directory=tmp_path)

    assert store.write_node("broken", SettingsMap()) is None
    assert store.write_all({"broken": SettingsMap()}, SettingsMap()) == []
    assert not (tmp_path / "nodes").exists()


def test_read_back_written_settings(tmp_path: Path):
    store = HieraStore(directory=tmp_path)
    store.write_node("primary", sample_settings())

    assert store.read_node_settings("primary") == sample_settings()


def test_read_ignores_keys_outside_the_catalog(tmp_path: Path):
    store = HieraStore(directory=tmp_path)
    store.nodes_directory.mkdir(parents=True)
    store.node_path("primary").write_text(
        "puppet_enterprise::puppetdb::command_processing_threads: 4\n"
        "profile::ntp::servers: [pool.ntp.org]\n",
        encoding="utf-8",
    )

    assert dict(store.read_node_settings("primary")) == {SettingKey.job_queue_threads: 4}


def test_read_missing_node_is_empty(tmp_path: Path):
    assert len(HieraStore(directory=tmp_path).read_node_settings("nobody")) == 0


def test_read_invalid_value_raises(tmp_path: Path):
    store = HieraStore(directory=tmp_path)
    store.nodes_directory.mkdir(parents=True)
    store.node_path("primary").write_text(
        "puppet_enterprise::profile::console::java_args: lots\n", encoding="utf-8"
    )

    with pytest.raises(InventoryError):
        store.read_node_settings("primary")
