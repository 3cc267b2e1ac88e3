#!/usr/bin/env python3
"""
Main entry point for SecFlow - security tool lifecycle and workflow orchestration
"""

import asyncio
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple
import json
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from secflow.core.orchestrator import SecFlowOrchestrator
from secflow.errors import SecFlowError
from secflow.models.installation import InstallOutcome
from secflow.models.run import RunStatus
from secflow.utils.logging import setup_root_logger
from config.settings import Settings


logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Manage security tools and run tool workflows"
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration file (JSON format)"
    )

    parser.add_argument(
        "--state-dir",
        type=Path,
        help="Directory holding tools, workflows and run reports (default: state)"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )

    groups = parser.add_subparsers(dest="group", required=True)

    # tools
    tools = groups.add_parser("tools", help="Register and install tools")
    tool_cmds = tools.add_subparsers(dest="command", required=True)

    add = tool_cmds.add_parser("add", help="Register a tool")
    add.add_argument("reference", help="owner/repo or repository URL")
    add.add_argument("--method", choices=["git", "go"], default="git", help="Install method (default: git)")
    add.add_argument("--name", help="Display name (default: repository name)")
    add.add_argument("--description", default="", help="Tool description")
    add.add_argument("--install-command", help="Build command run in the clone after a git install")

    tool_cmds.add_parser("list", help="List registered tools")

    for name, help_text in [("remove", "Remove a tool"),
                            ("install", "Install a tool and wait for it"),
                            ("reset", "Reset a failed tool to pending")]:
        cmd = tool_cmds.add_parser(name, help=help_text)
        cmd.add_argument("tool_id", help="Tool id")

    # workflows
    workflows = groups.add_parser("workflows", help="Define and run workflows")
    wf_cmds = workflows.add_subparsers(dest="command", required=True)

    create = wf_cmds.add_parser("create", help="Create and save a workflow")
    create.add_argument("name", help="Workflow name")
    create.add_argument("--description", default="", help="Workflow description")
    create.add_argument(
        "--step",
        action="append",
        default=[],
        metavar="TOOL::COMMAND",
        help="Add a step; repeat for more steps, in order"
    )

    wf_cmds.add_parser("list", help="List saved workflows")

    for name, help_text in [("remove", "Remove a workflow"),
                            ("run", "Run a workflow and print its report")]:
        cmd = wf_cmds.add_parser(name, help=help_text)
        cmd.add_argument("workflow_id", help="Workflow id")

    return parser.parse_args(argv)


def parse_step(value: str) -> Tuple[str, str]:
    """Split a TOOL::COMMAND step argument."""
    tool, sep, command = value.partition("::")
    if not sep or not tool.strip() or not command.strip():
        raise ValueError(f"Step must look like TOOL::COMMAND, got: {value}")
    return tool.strip(), command.strip()


def load_config(args) -> Settings:
    """Load configuration from file or command line."""
    config_data = {}
    if args.config and args.config.exists():
        with open(args.config) as f:
            config_data = json.load(f)

    # Override with command line args
    if args.state_dir:
        config_data.setdefault("storage", {})["state_dir"] = str(args.state_dir)
    if args.log_level:
        config_data.setdefault("logging", {})["level"] = args.log_level

    return Settings(**config_data)


async def run_command(args, orchestrator: SecFlowOrchestrator) -> int:
    """Dispatch one CLI command. Returns the process exit code."""
    if args.group == "tools":
        if args.command == "add":
            tool = orchestrator.register_tool(
                args.reference,
                install_method=args.method,
                display_name=args.name,
                description=args.description,
                install_command=args.install_command
            )
            print(f"{tool.id}  {tool.display_name}  {tool.source_reference}  {tool.status.value}")
        elif args.command == "list":
            for tool in orchestrator.list_tools():
                line = f"{tool.id}  {tool.display_name:<20} {tool.install_method.value:<4} {tool.status.value}"
                if tool.error_detail:
                    line += f"  ({tool.error_detail})"
                print(line)
        elif args.command == "remove":
            orchestrator.remove_tool(args.tool_id)
        elif args.command == "reset":
            orchestrator.reset_tool(args.tool_id)
        elif args.command == "install":
            task = orchestrator.install_tool(args.tool_id)
            result = await task
            print(f"{result.tool_name}: {result.outcome.value}")
            if result.error_detail:
                print(result.error_detail)
            return 0 if result.outcome == InstallOutcome.SUCCEEDED else 1
        return 0

    if args.command == "create":
        steps = [parse_step(s) for s in args.step]
        workflow = orchestrator.create_workflow(args.name, args.description)
        for tool, command in steps:
            orchestrator.add_step(workflow.id, tool=tool, command=command)
        saved = orchestrator.save_workflow(workflow.id)
        print(f"{saved.id}  {saved.name}  ({len(saved.steps)} steps)")
    elif args.command == "list":
        for workflow in orchestrator.list_workflows():
            print(f"{workflow.id}  {workflow.name}")
            for index, step in enumerate(workflow.steps, start=1):
                print(f"    {index}. {step.tool} -> {step.command}")
    elif args.command == "remove":
        orchestrator.remove_workflow(args.workflow_id)
    elif args.command == "run":
        report = await orchestrator.run_workflow(args.workflow_id)
        print(json.dumps(report.model_dump(mode="json"), indent=2))
        return 0 if report.status == RunStatus.SUCCEEDED else 1
    return 0


async def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)

    try:
        settings = load_config(args)
    except (ValueError, OSError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    # Setup logging
    setup_root_logger(
        settings.logging.file_path,
        settings.logging.level,
        format_string=settings.logging.format,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count
    )
    logger.debug(f"Arguments: {vars(args)}")

    try:
        orchestrator = SecFlowOrchestrator(settings).init()
        return await run_command(args, orchestrator)
    except SecFlowError as e:
        logger.error(f"{e.kind}: {e.message}")
        return 1
    except ValueError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


def cli():
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
