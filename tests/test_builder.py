from __future__ import annotations

from pathlib import Path

import pytest

from datical_step.builder import build, build_normalized, resolve_executable
from datical_step.core import Action, Platform
from datical_step.errors import ConfigurationError
from datical_step.runner import launch_args


def _exists_only(*paths: str):
    present = set(paths)
    return lambda p: p in present


def test_status_command_on_posix_uses_repl_layout() -> None:
    cmd = build(
        "/opt/datical",
        "/opt/drivers",
        "/home/proj",
        "status",
        "db1",
        Platform.POSIX,
        exists=_exists_only("/opt/datical/repl/hammer"),
    )
    assert cmd == '/opt/datical/repl/hammer "--drivers=/opt/drivers" "--project=/home/proj" status "db1"'


def test_falls_back_to_cli_installer_layout() -> None:
    cmd = build(
        "/opt/datical",
        "/opt/drivers",
        "/home/proj",
        "status",
        "db1",
        Platform.POSIX,
        exists=_exists_only("/opt/datical/hammer"),
    )
    assert cmd.startswith('/opt/datical/hammer "--drivers=')


def test_windows_executable_gets_bat_suffix() -> None:
    exe = resolve_executable("C:\\Datical\\", Platform.WINDOWS, exists=_exists_only("C:\\Datical/repl/hammer.bat"))
    assert exe == "C:\\Datical/repl/hammer.bat"
    assert resolve_executable("C:\\Datical", Platform.WINDOWS, exists=_exists_only()) == "C:\\Datical/hammer.bat"


def test_resolve_executable_checks_real_filesystem(tmp_path: Path) -> None:
    (tmp_path / "repl").mkdir()
    (tmp_path / "repl" / "hammer").write_text("#!/bin/sh\n", encoding="utf-8")
    assert resolve_executable(str(tmp_path), Platform.POSIX) == f"{tmp_path}/repl/hammer"


def test_deploy_ends_with_quoted_server() -> None:
    cmd = build("/d", "/drv", "/p", "deploy", "prod1", Platform.POSIX, exists=_exists_only())
    assert cmd.endswith('deploy "prod1"')


@pytest.mark.parametrize("action", [a.value for a in Action if a.requires_server])
def test_server_actions_append_server(action: str) -> None:
    cmd = build("/d", "/drv", "/p", action, "srv", Platform.POSIX, exists=_exists_only())
    assert cmd.endswith(f'{action} "srv"')


def test_checkdrivers_never_appends_server() -> None:
    cmd = build("/d", "/drv", "/p", "checkdrivers", "prod1", Platform.POSIX, exists=_exists_only())
    assert cmd.endswith('"--project=/p" checkdrivers')
    assert "prod1" not in cmd


@pytest.mark.parametrize("action", ["rollback-typo", "Deploy", "", "rollback"])
def test_unknown_action_raises(action: str) -> None:
    with pytest.raises(ConfigurationError):
        build("/d", "/drv", "/p", action, "srv", Platform.POSIX, exists=_exists_only())


def test_missing_server_for_server_action_raises() -> None:
    with pytest.raises(ConfigurationError, match="requires a server"):
        build("/d", "/drv", "/p", "forecast", "", Platform.POSIX, exists=_exists_only())


def test_install_dir_with_spaces_is_quoted() -> None:
    cmd = build("/opt/my tools", "/drv", "/p", "checkdrivers", "", Platform.POSIX, exists=_exists_only())
    assert cmd.startswith('"/opt/my tools/hammer" ')


def test_build_normalized_for_windows() -> None:
    cmd = build_normalized(
        "C:/Datical",
        "C:/drivers",
        "%WORKSPACE%/proj",
        "deploy",
        "prod1",
        Platform.WINDOWS,
        exists=_exists_only(),
    )
    assert cmd.raw == 'C:/Datical/hammer.bat "--drivers=C:/drivers" "--project=%WORKSPACE%/proj" deploy "prod1"'
    assert cmd.separators_sanitized == (
        'C:\\Datical\\hammer.bat "--drivers=C:\\drivers" "--project=%WORKSPACE%\\proj" deploy "prod1"'
    )
    assert cmd.env_sanitized == cmd.separators_sanitized


def test_build_normalized_for_posix_converts_env_vars() -> None:
    cmd = build_normalized(
        "/opt/datical",
        "/opt/drivers",
        "%WORKSPACE%\\proj",
        "status",
        "db1",
        Platform.POSIX,
        exists=_exists_only(),
    )
    assert cmd.separators_sanitized == '/opt/datical/hammer "--drivers=/opt/drivers" "--project=%WORKSPACE%/proj" status "db1"'
    assert cmd.env_sanitized == '/opt/datical/hammer "--drivers=/opt/drivers" "--project=$WORKSPACE/proj" status "db1"'


def test_install_dir_with_single_quote_stays_one_argument() -> None:
    cmd = build(
        "/home/o'neil/datical",
        "/opt/drivers",
        "/home/proj",
        "status",
        "db1",
        Platform.POSIX,
        exists=_exists_only("/home/o'neil/datical/repl/hammer"),
    )
    assert cmd.startswith("\"/home/o'neil/datical/repl/hammer\" ")
    assert launch_args(cmd, Platform.POSIX) == [
        "/home/o'neil/datical/repl/hammer",
        "--drivers=/opt/drivers",
        "--project=/home/proj",
        "status",
        "db1",
    ]


def test_single_quotes_in_quoted_values_survive_tokenizing() -> None:
    cmd = build("/d", "/opt/o'neil drivers", "/p", "deploy", "prod'1", Platform.POSIX, exists=_exists_only())
    args = launch_args(cmd, Platform.POSIX)
    assert args[1] == "--drivers=/opt/o'neil drivers"
    assert args[-1] == "prod'1"


@pytest.mark.parametrize(
    "overrides",
    [
        {"server": 'prod"1'},
        {"drivers_dir": '/opt/"drivers"'},
        {"project_dir": '/home/"proj'},
    ],
)
def test_double_quote_in_value_is_rejected(overrides: dict) -> None:
    values = dict(install_dir="/d", drivers_dir="/drv", project_dir="/p", server="prod1")
    values.update(overrides)
    with pytest.raises(ConfigurationError, match="double quote"):
        build(
            values["install_dir"],
            values["drivers_dir"],
            values["project_dir"],
            "deploy",
            values["server"],
            Platform.POSIX,
            exists=_exists_only(),
        )
