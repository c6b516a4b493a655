import asyncio
from pathlib import Path

import pytest
import typer
import yaml

import launcher
from core.errors import UnexpectedTerminationError


@pytest.mark.asyncio
async def test_serve_runs_until_the_repeater_dies(config, repeater_mode, capsys) -> None:
    repeater_mode("crash")

    with pytest.raises(UnexpectedTerminationError):
        await asyncio.wait_for(launcher.serve(config), timeout=5)

    out = capsys.readouterr().out
    assert "Press Ctrl-C to stop" in out


def test_main_exits_non_zero_when_the_repeater_cannot_launch(tmp_path: Path) -> None:
    path = tmp_path / "harness.yml"
    path.write_text(yaml.safe_dump({"repeater": {"command": ["definitely-not-a-repeater-binary"]}}))

    with pytest.raises(typer.Exit) as excinfo:
        launcher.main(config_path=path)

    assert excinfo.value.exit_code == 1
