import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from bridgekeeper.errors import BridgeKeeperError

from .console import Colors, print_colored


logger = logging.getLogger(__name__)


@dataclass
class PromptResult:
    prompt: str
    answer: Optional[str] = None
    error: Optional[BridgeKeeperError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchSession:
    """
    Runs prompts one after another.

    A failing prompt is reported and recorded; the remaining prompts still run.
    """

    def __init__(self, run_one: Callable[[str], str], label: str = "BridgeKeeper", echo: bool = True) -> None:
        self.run_one = run_one
        self.label = label
        self.echo = echo

    def run(self, prompts: Iterable[str]) -> List[PromptResult]:
        results: List[PromptResult] = []
        for prompt in prompts:
            prompt = prompt.strip()
            if not prompt:
                continue
            print_colored(f"> {prompt}", Colors.GREEN)
            result = PromptResult(prompt=prompt)
            try:
                result.answer = self.run_one(prompt)
            except BridgeKeeperError as e:
                logger.error(f"Prompt failed: {e}")
                print_colored(f"❌ Error: {e}", Colors.RED)
                result.error = e
            else:
                if self.echo:
                    print_colored(f"({self.label}) - {result.answer}", Colors.BLUE)
            results.append(result)
            print()
        failed = sum(1 for r in results if not r.ok)
        logger.info(f"Batch finished: {len(results) - failed} succeeded, {failed} failed")
        return results
