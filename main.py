"""Run the EnvVault CLI from a source checkout: ``python main.py seal .env``."""

import sys
from pathlib import Path

SRC = Path(__file__).resolve().parent / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from envvault.frontend.cli.app import main


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
