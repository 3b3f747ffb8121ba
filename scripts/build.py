"""Developer pipeline for the Bookmark Desktop project.

Steps, in order:

1. Editable install including the dev extras.
2. The pytest suite.
3. Source and wheel distributions via `python -m build`.

Usage examples:
    python scripts/build.py                 # full pipeline
    python scripts/build.py --no-install    # reuse the current environment
    python scripts/build.py --package-only  # only build distributions
"""

from __future__ import annotations

import argparse
import subprocess
import sys
from pathlib import Path
from typing import Iterable, List, Optional

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class StepError(RuntimeError):
    """Raised when one of the build steps fails."""


def run_command(command: Iterable[str | Path], *, cwd: Optional[Path] = None) -> None:
    cmd_list: List[str] = [str(part) for part in command]
    display = " ".join(cmd_list)
    print(f"\n>> {display}")
    result = subprocess.run(cmd_list, cwd=str(cwd or PROJECT_ROOT))
    if result.returncode != 0:
        raise StepError(f"Command failed with exit code {result.returncode}: {display}")


def install_dependencies() -> None:
    run_command([sys.executable, "-m", "pip", "install", "-e", ".[dev]"])


def run_tests(extra_args: Iterable[str] = ()) -> None:
    run_command([sys.executable, "-m", "pytest", *extra_args])


def build_distributions(out_dir: Optional[Path] = None) -> None:
    """Build sdist and wheel, installing `build` on demand."""
    try:
        __import__("build")
    except ModuleNotFoundError:
        run_command([sys.executable, "-m", "pip", "install", "build"])
    command = [sys.executable, "-m", "build"]
    if out_dir is not None:
        out_dir.mkdir(parents=True, exist_ok=True)
        command.extend(["--outdir", str(out_dir)])
    run_command(command)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bookmark Desktop build helper")
    parser.add_argument("--no-install", dest="install", action="store_false", help="Skip dependency installation")
    parser.add_argument("--no-tests", dest="tests", action="store_false", help="Skip running the pytest suite")
    parser.add_argument("--no-package", dest="package", action="store_false", help="Skip building distributions")
    parser.add_argument(
        "--package-only",
        dest="package_only",
        action="store_true",
        help="Only build distributions (implies --no-install --no-tests)",
    )
    parser.add_argument("--dist", dest="dist", type=Path, help="Custom output directory for build artifacts")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    install_step, test_step, package_step = args.install, args.tests, args.package
    if args.package_only:
        install_step = test_step = False
        package_step = True

    try:
        if install_step:
            install_dependencies()
        if test_step:
            run_tests()
        if package_step:
            build_distributions(args.dist)
    except StepError as error:
        print(f"\nBuild failed: {error}")
        raise SystemExit(1) from error

    print("\nBuild pipeline completed successfully.")


if __name__ == "__main__":
    main()
