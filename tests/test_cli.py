import socket
from pathlib import Path

import yaml
from typer.testing import CliRunner

from harness import cli

runner = CliRunner()


def _write(config, path: Path) -> Path:
    config.config_path = path
    config.save_config()
    return path


def test_init_writes_defaults(tmp_path: Path) -> None:
    path = tmp_path / "harness.yml"

    result = runner.invoke(cli, ["--config", str(path), "init"])

    assert result.exit_code == 0
    assert yaml.safe_load(path.read_text())["repeater"]["port"] == 8125


def test_show_config_prints_effective_settings(tmp_path: Path) -> None:
    path = tmp_path / "harness.yml"
    path.write_text(yaml.safe_dump({"collector": {"port": 19125}}))

    result = runner.invoke(cli, ["--config", str(path), "show-config"])

    assert result.exit_code == 0
    shown = yaml.safe_load(result.stdout)
    assert shown["collector"]["port"] == 19125
    assert shown["repeater"]["ready_pattern"] == "server is listening"


def test_send_delivers_one_datagram(tmp_path: Path) -> None:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.bind(("127.0.0.1", 0))
        sock.settimeout(2)
        port = sock.getsockname()[1]

        result = runner.invoke(cli, ["--config", str(tmp_path / "harness.yml"),
                                     "send", "foobar", "--port", str(port), "--host", "127.0.0.1"])
        data, _ = sock.recvfrom(1024)

    assert result.exit_code == 0
    assert data == b"foobar"


def test_run_passes_against_a_forwarding_repeater(config, repeater_mode, tmp_path: Path) -> None:
    path = _write(config, tmp_path / "harness.yml")

    result = runner.invoke(cli, ["--config", str(path), "run", "--payload", "foobar"])

    assert result.exit_code == 0, result.output
    assert "PASS" in result.stdout


def test_run_fails_when_the_repeater_crashes_early(config, repeater_mode, tmp_path: Path) -> None:
    repeater_mode("fail")
    path = _write(config, tmp_path / "harness.yml")

    result = runner.invoke(cli, ["--config", str(path), "run"])

    assert result.exit_code == 1
    assert "FAIL" in result.stdout


def test_run_fails_on_a_missing_repeater_binary(tmp_path: Path) -> None:
    path = tmp_path / "harness.yml"
    path.write_text(yaml.safe_dump({"repeater": {"command": ["definitely-not-a-repeater-binary"]}}))

    result = runner.invoke(cli, ["--config", str(path), "run"])

    assert result.exit_code == 1
