import json

import pytest

from module.ConfigStore import ClientConfig, get_value, load_client_config, load_raw


class TestRawValues:
    def test_get_value_unwraps_described_values(self):
        raw = {"server_port": [9000, "端口"], "framing": "sentinel"}
        assert get_value(raw, "server_port") == 9000
        assert get_value(raw, "framing") == "sentinel"
        assert get_value(raw, "missing", 42) == 42

    def test_load_raw_reads_explicit_path(self, tmp_path):
        path = str(tmp_path / "config.json")
        with open(path, "w", encoding="utf-8-sig") as f:
            json.dump({"server_host": ["::1", "地址"]}, f, ensure_ascii=False)
        loaded_path, raw = load_raw(path)
        assert loaded_path == path
        assert raw == {"server_host": ["::1", "地址"]}


class TestClientConfig:
    def test_defaults(self):
        config = ClientConfig()
        assert (config.server_host, config.server_port) == ("127.0.0.1", 8080)
        assert config.response_timeout_seconds == 120.0
        assert config.framing == "stream_end"
        assert config.response_format == "envelope"

    def test_missing_file_gives_defaults(self):
        path, config = load_client_config()
        assert path is None
        assert config == ClientConfig()

    def test_config_json_in_working_directory(self):
        with open("config.json", "w", encoding="utf-8") as f:
            json.dump(
                {
                    "server_port": [9999, "端口"],
                    "framing": ["sentinel", "分帧"],
                    "target_language": ["", "留空"],
                    "unrelated": 1,
                },
                f,
            )

        path, config = load_client_config()
        assert path == "config.json"
        assert config.server_port == 9999
        assert config.framing == "sentinel"
        assert config.target_language is None

    def test_dev_config_wins(self):
        for name, port in (("config.json", 1), ("config_dev.json", 2)):
            with open(name, "w", encoding="utf-8") as f:
                json.dump({"server_port": port}, f)

        path, config = load_client_config()
        assert path == "config_dev.json"
        assert config.server_port == 2

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"framing": "length_prefix"},
            {"response_format": "yaml"},
            {"response_timeout_seconds": 0},
        ],
    )
    def test_invalid_values_are_rejected(self, kwargs):
        with pytest.raises(ValueError):
            ClientConfig(**kwargs)
