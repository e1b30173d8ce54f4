from __future__ import annotations

import sys

from assurance_cli.cli import main as cli_main
from assurance_cli.exceptions import AssuranceError


def main() -> None:
    try:
        cli_main()
    except AssuranceError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print()
        sys.exit(130)


if __name__ == "__main__":
    main()
