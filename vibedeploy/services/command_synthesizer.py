"""
Command Synthesizer component.

Builds the deployment command for a pull request branch. The instruction
order is fixed; the completion listener keys on GO_LIVE_INSTRUCTION, so
the two must stay in step.
"""

from typing import List, Optional

from vibedeploy.models.deployment import CorrelationMetadata, DeploymentCommand
from vibedeploy.models.enums import CommandType
from vibedeploy.models.pr_metadata import PRMetadata


DEFAULT_BRANCH = "main"
GO_LIVE_INSTRUCTION = "docker compose up -d"


def build_instructions(branch: str) -> List[str]:
    """
    Ordered shell instructions to deploy `branch`.

    fetch, checkout branch, pull, build, stop, start (go-live), then
    return the working tree to the default branch.
    """
    return [
        "git fetch origin",
        f"git checkout {branch}",
        "git pull",
        "docker compose build",
        "docker compose down",
        GO_LIVE_INSTRUCTION,
        f"git checkout {DEFAULT_BRANCH}",
    ]


def working_directory(base_dir: str, repository: str) -> str:
    """Checkout location for a repository under the base directory."""
    return f"{base_dir}/{repository}"


def create_deployment_command(
    metadata: PRMetadata,
    base_dir: str,
    correlation: Optional[CorrelationMetadata] = None
) -> DeploymentCommand:
    """
    Synthesize a deployment command.

    Args:
        metadata: Resolved PR metadata (repository and branch set)
        base_dir: Directory holding repository checkouts
        correlation: Channel/ts to route completion back, if any

    Returns:
        DeploymentCommand ready to enqueue
    """
    return DeploymentCommand(
        repo=metadata.repository,
        branch=metadata.branch,
        type=CommandType.VIBE_DEPLOY,
        dir=working_directory(base_dir, metadata.repository),
        commands=build_instructions(metadata.branch),
        metadata=correlation,
    )
