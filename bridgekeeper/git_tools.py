"""
Git command execution exposed to the model as a tool.

Arguments are passed to the git executable unmodified; failures are folded
into the returned text so the model can see them.
"""

import logging
import subprocess
from typing import Any, List, Mapping, Optional, Sequence

from .tools import ToolDefinition, ToolParameter

logger = logging.getLogger(__name__)

GIT_TOOL_NAME = 'execute_git_command'
GIT_TOOL_DESCRIPTION = (
    "Executes a git command in a local repository. "
    "Only provide the arguments, not the 'git' binary itself."
)
GIT_ARGS_DESCRIPTION = "A list of strings representing the git arguments (e.g., ['log', '-n', '3'])."


class GitExecutor:
    """Runs git in a fixed repository directory."""

    def __init__(self, repo_path: str = './', timeout: int = 30, binary: str = 'git'):
        """
        Initialize git executor.

        Args:
            repo_path: Working directory for every git invocation
            timeout: Maximum execution time in seconds
            binary: Git executable to run
        """
        self.repo_path = repo_path
        self.timeout = timeout
        self.binary = binary

    def execute(self, args: Sequence[str]) -> str:
        """
        Run `git <args>` and return combined stdout/stderr.

        Never raises: a non-zero exit, a missing directory or binary, or a
        timeout is reported as "Error executing command: ..." text.
        """
        logger.info(f"Executing: git {' '.join(args)} in {self.repo_path}")
        try:
            result = subprocess.run(
                [self.binary] + list(args),
                cwd=self.repo_path,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            output = e.output or ''
            if isinstance(output, bytes):
                output = output.decode(errors='replace')
            return self._diagnostic(f"timed out after {self.timeout} seconds", output)
        except OSError as e:
            return self._diagnostic(str(e), '')

        if result.returncode != 0:
            return self._diagnostic(f"exit status {result.returncode}", result.stdout)
        return result.stdout

    @staticmethod
    def _diagnostic(cause: str, output: str) -> str:
        logger.debug(f"git failed: {cause}")
        return f"Error executing command: {cause}\nOutput: {output}"


def run_git(repo_path: str, args: Sequence[str], timeout: int = 30) -> str:
    """Run git once in `repo_path`; see GitExecutor.execute."""
    return GitExecutor(repo_path, timeout=timeout).execute(args)


def _coerce_args(arguments: Mapping[str, Any]) -> List[str]:
    args = arguments.get('args')
    if not isinstance(args, (list, tuple)):
        raise ValueError("model failed to provide git arguments")
    if not all(isinstance(arg, str) for arg in args):
        raise ValueError(f"git arguments must be strings, got {args!r}")
    return list(args)


def git_tool(repo_path: str = './', executor: Optional[GitExecutor] = None) -> ToolDefinition:
    """Tool definition running git in `repo_path`."""
    executor = executor or GitExecutor(repo_path)

    def handler(arguments: Mapping[str, Any]) -> str:
        return executor.execute(_coerce_args(arguments))

    return ToolDefinition(
        name=GIT_TOOL_NAME,
        description=GIT_TOOL_DESCRIPTION,
        handler=handler,
        parameters={
            'args': ToolParameter(type='array', description=GIT_ARGS_DESCRIPTION, items=ToolParameter(type='string')),
        },
        required=['args'],
    )
