"""Tests for client config loading."""

import pytest
from pathlib import Path
from tttmirror.config import ClientConfig, MirrorConfig, load_config
from tttmirror.core.keys import PublicKey

EXAMPLE_CONFIG = Path(__file__).resolve().parent.parent / "client.yaml.example"
PROGRAM_HEX = "ab" * 32


class TestClientConfigDefaults:
    def test_defaults(self):
        c = ClientConfig()
        assert c.record_size == 256
        assert c.keep_alive_interval_ms == 1000
        assert c.liveness_timeout_ms == 10_000
        assert c.keep_alive_timeout_s is None
        assert c.resolve_program_id() is None

    def test_mirror_config_defaults(self):
        config = MirrorConfig()
        assert config.telemetry.output_dir is None
        assert config.client.record_size == 256


class TestProgramIdResolution:
    def test_explicit_program_id_wins(self, monkeypatch):
        monkeypatch.setenv("TTT_PROGRAM_ID", "cd" * 32)
        c = ClientConfig(
            program_id=PublicKey.from_hex(PROGRAM_HEX), program_id_env="TTT_PROGRAM_ID"
        )
        assert str(c.resolve_program_id()) == PROGRAM_HEX

    def test_env_fallback(self, monkeypatch):
        monkeypatch.setenv("TTT_PROGRAM_ID", PROGRAM_HEX + "\n")
        c = ClientConfig(program_id_env="TTT_PROGRAM_ID")
        assert str(c.resolve_program_id()) == PROGRAM_HEX

    def test_env_unset(self, monkeypatch):
        monkeypatch.delenv("TTT_PROGRAM_ID", raising=False)
        assert ClientConfig(program_id_env="TTT_PROGRAM_ID").resolve_program_id() is None


class TestLoadConfig:
    def test_example_config_loads(self):
        config = load_config(EXAMPLE_CONFIG)
        assert config.client.keep_alive_interval_ms == 1000
        assert config.client.liveness_timeout_ms == 10_000
        assert config.client.program_id_env == "TTT_PROGRAM_ID"
        assert config.telemetry.output_dir == Path("output/sessions")

    def test_all_fields(self, tmp_path):
        path = tmp_path / "client.yaml"
        path.write_text(
            "client:\n"
            f"  program_id: {PROGRAM_HEX}\n"
            "  record_size: 512\n"
            "  keep_alive_interval_ms: 250\n"
            "  liveness_timeout_ms: 3000\n"
            "  keep_alive_timeout_s: 2\n"
            "telemetry:\n"
            "  output_dir: logs\n"
        )
        config = load_config(path)
        assert str(config.client.program_id) == PROGRAM_HEX
        assert config.client.record_size == 512
        assert config.client.keep_alive_interval_ms == 250
        assert config.client.liveness_timeout_ms == 3000
        assert config.client.keep_alive_timeout_s == 2.0
        assert config.telemetry.output_dir == Path("logs")

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        config = load_config(path)
        assert config.client == ClientConfig()
        assert config.telemetry.output_dir is None

    def test_bad_program_id(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("client:\n  program_id: abcd\n")
        with pytest.raises(ValueError):
            load_config(path)
