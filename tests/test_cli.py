"""Tests for the command line entry point."""
import json
import logging

import pytest

from main import load_config, main, parse_arguments, parse_step


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Run the CLI inside a scratch directory and restore logging afterwards."""
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield tmp_path
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def cli(workspace, *argv):
    return ["--state-dir", str(workspace / "state"), *argv]


class TestParsing:

    def test_parse_step(self):
        assert parse_step("nmap::nmap -sV host") == ("nmap", "nmap -sV host")
        assert parse_step(" httpx :: httpx -u a::b ") == ("httpx", "httpx -u a::b")

    @pytest.mark.parametrize("value", ["nmap", "::cmd", "tool::", "tool:: "])
    def test_parse_step_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            parse_step(value)

    def test_tools_add_arguments(self):
        args = parse_arguments(["tools", "add", "OJ/gobuster", "--install-command", "make"])
        assert args.group == "tools"
        assert args.command == "add"
        assert args.method == "git"
        assert args.install_command == "make"

    def test_repeated_steps_keep_order(self):
        args = parse_arguments(["workflows", "create", "recon", "--step", "a::1", "--step", "b::2"])
        assert args.step == ["a::1", "b::2"]

    def test_command_line_overrides_config_file(self, tmp_path):
        config = tmp_path / "config.json"
        config.write_text(json.dumps({
            "storage": {"state_dir": "from-file"},
            "executor": {"timeout_seconds": 30},
        }))
        args = parse_arguments(["--config", str(config), "--state-dir", "from-cli",
                                "--log-level", "DEBUG", "tools", "list"])
        settings = load_config(args)

        assert str(settings.storage.state_dir) == "from-cli"
        assert settings.executor.timeout_seconds == 30
        assert settings.logging.level == "DEBUG"


class TestMain:

    @pytest.mark.asyncio
    async def test_add_and_list_tools(self, workspace, capsys):
        assert await main(cli(workspace, "tools", "add", "projectdiscovery/nuclei", "--method", "go")) == 0
        assert await main(cli(workspace, "tools", "list")) == 0

        out = capsys.readouterr().out
        assert "nuclei" in out
        assert "pending" in out
        assert (workspace / "state" / "tools.json").exists()

    @pytest.mark.asyncio
    async def test_duplicate_tool_exits_nonzero(self, workspace):
        assert await main(cli(workspace, "tools", "add", "projectdiscovery/nuclei")) == 0
        assert await main(cli(workspace, "tools", "add", "https://github.com/projectdiscovery/nuclei")) == 1

    @pytest.mark.asyncio
    async def test_remove_unknown_tool_exits_nonzero(self, workspace):
        assert await main(cli(workspace, "tools", "remove", "missing")) == 1

    @pytest.mark.asyncio
    async def test_malformed_step_exits_nonzero(self, workspace):
        assert await main(cli(workspace, "workflows", "create", "recon", "--step", "nope")) == 1

    @pytest.mark.asyncio
    async def test_run_with_unregistered_tool_reports_failure(self, workspace, capsys):
        assert await main(cli(workspace, "workflows", "create", "recon",
                              "--step", "ghost::ghost --scan")) == 0
        workflow_id = capsys.readouterr().out.split()[0]

        assert await main(cli(workspace, "workflows", "run", workflow_id)) == 1
        report = json.loads(capsys.readouterr().out)
        assert report["status"] == "failed"
        assert report["outcomes"][0]["error_kind"] == "UnresolvedTool"

    @pytest.mark.asyncio
    async def test_run_empty_workflow_exits_nonzero(self, workspace, capsys):
        assert await main(cli(workspace, "workflows", "create", "empty")) == 0
        workflow_id = capsys.readouterr().out.split()[0]
        assert await main(cli(workspace, "workflows", "run", workflow_id)) == 1
