import sys


class Colors:
    BLUE = '\033[94m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    CYAN = '\033[96m'
    GRAY = '\033[90m'
    RESET = '\033[0m'


def print_colored(text: str, color: str = Colors.RESET) -> None:
    print(f"{color}{text}{Colors.RESET}")


def print_stream(label: str, fragments) -> str:
    """Echo text fragments as they arrive; returns the full text."""
    print(f"{Colors.BLUE}{label}{Colors.RESET}", end='')
    parts = []
    for fragment in fragments:
        print(fragment, end='')
        sys.stdout.flush()
        parts.append(fragment)
    print()
    return ''.join(parts)
