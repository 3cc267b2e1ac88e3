"""Integration tests for the orchestrator facade."""
import pytest

from config.settings import Settings, StorageConfig, InstallConfig
from secflow.core.events import TOOL_STATUS_CHANGED
from secflow.core.orchestrator import SecFlowOrchestrator
from secflow.errors import InvalidState
from secflow.models.installation import InstallOutcome
from secflow.models.run import RunStatus
from secflow.models.tool import ToolStatus


class TestLifecycle:

    def test_use_before_init(self, settings, executor):
        orchestrator = SecFlowOrchestrator(settings, executor=executor)
        assert not orchestrator.initialized
        with pytest.raises(InvalidState):
            orchestrator.list_tools()

    def test_init_is_idempotent(self, orchestrator):
        registry = orchestrator.registry
        assert orchestrator.init().registry is registry


class TestEndToEnd:
    """Register, install and run through the facade."""

    @pytest.mark.asyncio
    async def test_install_then_run(self, orchestrator, executor):
        tool = orchestrator.register_tool("projectdiscovery/httpx", install_method="go")
        result = await orchestrator.install_tool(tool.id)
        assert result.outcome == InstallOutcome.SUCCEEDED
        assert orchestrator.get_tool(tool.id).status == ToolStatus.READY

        wf = orchestrator.create_workflow("probe")
        orchestrator.add_step(wf.id, tool="httpx", command="httpx -u example.com")
        orchestrator.save_workflow(wf.id)

        report = await orchestrator.run_workflow(wf.id)
        assert report.status == RunStatus.SUCCEEDED
        assert executor.calls[-1] == ("httpx -u example.com", None)

    @pytest.mark.asyncio
    async def test_git_tool_steps_run_in_its_clone(self, orchestrator, executor, tmp_path):
        tool = orchestrator.register_tool("OJ/gobuster")
        await orchestrator.install_tool(tool.id)
        # the fake executor does not clone, so create the checkout by hand
        (tmp_path / "tools" / "OJ" / "gobuster").mkdir(parents=True, exist_ok=True)

        wf = orchestrator.create_workflow("dirs")
        orchestrator.add_step(wf.id, tool="gobuster", command="./gobuster dir -u host")
        orchestrator.save_workflow(wf.id)
        await orchestrator.run_workflow(wf.id)

        assert executor.calls[-1] == ("./gobuster dir -u host", str(tmp_path / "tools" / "OJ" / "gobuster"))

    @pytest.mark.asyncio
    async def test_failed_install_reset_and_retry(self, orchestrator, executor):
        executor.fail("go install")
        tool = orchestrator.register_tool("projectdiscovery/nuclei", install_method="go")
        await orchestrator.install_tool(tool.id)
        assert orchestrator.get_tool(tool.id).status == ToolStatus.ERROR

        orchestrator.reset_tool(tool.id)
        executor.script.clear()
        await orchestrator.install_tool(tool.id)
        assert orchestrator.get_tool(tool.id).status == ToolStatus.READY

    @pytest.mark.asyncio
    async def test_subscribe_sees_status_changes(self, orchestrator):
        seen = []
        unsubscribe = orchestrator.subscribe(lambda e: seen.append(e.payload["status"]),
                                             TOOL_STATUS_CHANGED)
        tool = orchestrator.register_tool("projectdiscovery/nuclei", install_method="go")
        await orchestrator.install_tool(tool.id)
        unsubscribe()
        orchestrator.remove_tool(tool.id)

        assert seen == [ToolStatus.INSTALLING, ToolStatus.READY]

    @pytest.mark.parametrize("kwargs", [
        {"source_reference": ""},
        {"source_reference": "   "},
        {"source_reference": "not a repo"},
        {"source_reference": "projectdiscovery/nuclei", "install_method": "brew"},
    ])
    def test_invalid_registration_is_invalid_state(self, orchestrator, kwargs):
        with pytest.raises(InvalidState):
            orchestrator.register_tool(**kwargs)
        assert orchestrator.list_tools() == []

    def test_summary(self, orchestrator):
        orchestrator.register_tool("projectdiscovery/nuclei")
        orchestrator.register_tool("projectdiscovery/httpx")
        orchestrator.save_workflow(orchestrator.create_workflow("w").id)

        summary = orchestrator.summary()
        assert summary["total_tools"] == 2
        assert summary["pending"] == 2
        assert summary["ready"] == 0
        assert summary["workflows"] == 1


class TestPersistence:

    @pytest.mark.asyncio
    async def test_state_survives_restart(self, settings, executor):
        first = SecFlowOrchestrator(settings, executor=executor).init()
        tool = first.register_tool("projectdiscovery/nuclei", install_method="go")
        await first.install_tool(tool.id)
        wf = first.create_workflow("scan")
        first.add_step(wf.id, tool="nuclei", command="nuclei -u host")
        first.save_workflow(wf.id)
        report = await first.run_workflow(wf.id)

        second = SecFlowOrchestrator(settings, executor=executor).init()
        assert second.get_tool(tool.id).status == ToolStatus.READY
        assert [s.command for s in second.get_workflow(wf.id).steps] == ["nuclei -u host"]
        assert [r.run_id for r in second.list_reports(wf.id)] == [report.run_id]

    def test_persistence_disabled(self, tmp_path, executor):
        settings = Settings(
            storage=StorageConfig(state_dir=tmp_path / "state", persist=False),
            install=InstallConfig(tools_dir=tmp_path / "tools"),
        )
        orchestrator = SecFlowOrchestrator(settings, executor=executor).init()
        orchestrator.register_tool("projectdiscovery/nuclei")
        assert orchestrator.state is None
        assert not (tmp_path / "state").exists()
