"""Worktree provisioning: local-only files, .env ports, direnv and the setup script."""

import os
import shutil
import stat
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from workbloom.constants import PORT_ENV_KEYS
from workbloom.exceptions import ExternalProcessError
from workbloom.logging_config import get_logger
from workbloom.models.decision import PortTriple

logger = get_logger(__name__)

GLOB_CHARS = set("*?[")


@dataclass
class CopyReport:
    """Outcome of copying a manifest into a worktree."""

    copied: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)


def _expand(source_root: Path, entry: str) -> List[Path]:
    if GLOB_CHARS & set(entry):
        return sorted(source_root.glob(entry))
    candidate = source_root / entry
    return [candidate] if candidate.exists() else []


def copy_required_files(
    source_root: Union[str, Path], dest_root: Union[str, Path], manifest: Iterable[str]
) -> CopyReport:
    """Copy manifest entries from the main checkout into a worktree.

    Entries are relative paths, directories or globs. Copying is best effort
    per entry: a missing entry is recorded and skipped, a failing entry is
    logged and the rest still get copied.
    """
    source_root = Path(source_root)
    dest_root = Path(dest_root)
    report = CopyReport()

    for entry in manifest:
        sources = _expand(source_root, entry)
        if not sources:
            logger.debug(f"{entry} not found in main directory")
            report.missing.append(entry)
            continue

        for source in sources:
            relative = source.relative_to(source_root)
            destination = dest_root / relative
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                if source.is_dir():
                    shutil.copytree(source, destination, dirs_exist_ok=True)
                else:
                    shutil.copy2(source, destination)
            except OSError as e:
                logger.error(f"Failed to copy {relative}: {e}")
                report.failed.append((str(relative), str(e)))
                continue
            logger.info(f"Copied {relative}")
            report.copied.append(str(relative))

    return report


def update_env_with_ports(worktree_dir: Union[str, Path], ports: PortTriple) -> Path:
    """Write the port triple into the worktree's .env.

    Existing ``FRONTEND_PORT``/``BACKEND_PORT``/``DATABASE_PORT`` lines are
    replaced in place; missing ones are appended. Other lines are kept as is.
    """
    env_path = Path(worktree_dir) / ".env"
    values = ports.as_env()

    existing = env_path.read_text(encoding="utf-8") if env_path.exists() else ""
    lines = []
    seen = set()
    for line in existing.splitlines():
        key = line.strip().split("=", 1)[0]
        if "=" in line and key in values:
            lines.append(f"{key}={values[key]}")
            seen.add(key)
        else:
            lines.append(line)

    for key in PORT_ENV_KEYS.values():
        if key not in seen:
            lines.append(f"{key}={values[key]}")

    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    logger.info(f"Updated {env_path} with port allocations")
    return env_path


def setup_direnv(worktree_dir: Union[str, Path]) -> Optional[bool]:
    """Run ``direnv allow`` when the worktree has an .envrc.

    Returns:
        None if there is no .envrc, False if direnv is missing or failed, True on success
    """
    worktree_dir = Path(worktree_dir)
    if not (worktree_dir / ".envrc").exists():
        return None

    if shutil.which("direnv") is None:
        logger.warning("direnv not found. Run 'direnv allow' manually in the worktree directory")
        return False

    result = subprocess.run(
        ["direnv", "allow"], cwd=str(worktree_dir), capture_output=True, text=True, check=False
    )
    if result.returncode != 0:
        logger.warning(f"direnv allow failed: {result.stderr.strip()}")
        return False
    logger.info("direnv allowed for worktree")
    return True


def run_setup_script(worktree_dir: Union[str, Path], script_name: str) -> Optional[int]:
    """Run the project's setup script inside the new worktree.

    The script is made executable and run with bash. A non-zero exit is
    logged and returned; the worktree is left in place.

    Returns:
        None if there is no script, otherwise the script's exit code

    Raises:
        ExternalProcessError: bash itself could not be started
    """
    worktree_dir = Path(worktree_dir)
    script_path = worktree_dir / script_name
    if not script_path.is_file():
        return None

    logger.info(f"Found {script_name}, executing...")
    mode = script_path.stat().st_mode
    os.chmod(script_path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    try:
        result = subprocess.run(
            ["bash", str(script_path)],
            cwd=str(worktree_dir),
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        raise ExternalProcessError("bash", str(e)) from e

    if result.returncode != 0:
        logger.warning(f"{script_name} failed (exit {result.returncode}): {result.stderr.strip()}")
    else:
        logger.info("Setup script executed successfully")
    return result.returncode
