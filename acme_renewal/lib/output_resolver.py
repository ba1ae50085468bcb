"""Locate the live directory certbot wrote a lineage to.

Certbot normally writes ``live/<cert-name>``. When a lineage with the same
name already exists under a different domain set, it may create
``live/<cert-name>-0001`` and so on. Strategies are tried in order and the
first match wins.
"""

import logging
import re
from collections.abc import Callable, Sequence
from pathlib import Path

from .errors import OutputResolutionError
from .models import CertificatePaths

logger = logging.getLogger(__name__)

# "Certificate is saved at: /tmp/certbot/config/live/example.com/fullchain.pem"
SAVED_AT_RE = re.compile(r"saved at:?\s*(?P<path>\S+\.pem)", re.IGNORECASE)

ResolverStrategy = Callable[[Path, str, str], Path | None]


def from_saved_at_output(live_root: Path, lineage_name: str, output: str) -> Path | None:
    """Use the directory of the first "saved at" path certbot printed."""
    match = SAVED_AT_RE.search(output)
    if not match:
        return None
    candidate = Path(match.group("path")).parent
    if candidate.is_dir():
        return candidate
    logger.warning("Certbot reported %s but the directory does not exist", candidate)
    return None


def from_exact_lineage(live_root: Path, lineage_name: str, output: str) -> Path | None:
    """Use ``live/<lineage_name>`` when it exists."""
    candidate = live_root / lineage_name
    return candidate if candidate.is_dir() else None


def lineage_suffix_index(dir_name: str, lineage_name: str) -> int | None:
    """Return the numeric suffix of a lineage directory.

    ``example.com`` -> -1, ``example.com-0005`` -> 5, unrelated names -> None.
    """
    if dir_name == lineage_name:
        return -1
    prefix = f"{lineage_name}-"
    if not dir_name.startswith(prefix):
        return None
    suffix = dir_name[len(prefix) :]
    return int(suffix) if re.fullmatch(r"\d+", suffix, re.ASCII) else None


def select_latest_lineage(dir_names: Sequence[str], lineage_name: str) -> str | None:
    """Pick the highest-numbered lineage directory name."""
    best_name: str | None = None
    best_index: int | None = None
    for name in dir_names:
        index = lineage_suffix_index(name, lineage_name)
        if index is None:
            continue
        if best_index is None or index > best_index:
            best_name, best_index = name, index
    return best_name


def from_lineage_scan(live_root: Path, lineage_name: str, output: str) -> Path | None:
    """Scan ``live/`` for ``<lineage>`` or ``<lineage>-N`` and take the highest N."""
    if not live_root.is_dir():
        return None
    names = [p.name for p in live_root.iterdir() if p.is_dir()]
    selected = select_latest_lineage(names, lineage_name)
    return live_root / selected if selected else None


DEFAULT_STRATEGIES: tuple[ResolverStrategy, ...] = (
    from_saved_at_output,
    from_exact_lineage,
    from_lineage_scan,
)


def resolve_certificate_paths(
    live_root: Path,
    lineage_name: str,
    output: str,
    strategies: Sequence[ResolverStrategy] = DEFAULT_STRATEGIES,
) -> CertificatePaths:
    """Resolve and verify the certificate files of a lineage.

    Args:
        live_root: Certbot ``config/live`` directory
        lineage_name: Requested ``--cert-name``
        output: Captured certbot stdout and stderr
        strategies: Ordered resolver strategies

    Returns:
        CertificatePaths with every file present

    Raises:
        OutputResolutionError: If no directory matches or a file is missing
    """
    lineage_dir: Path | None = None
    for strategy in strategies:
        lineage_dir = strategy(live_root, lineage_name, output)
        if lineage_dir is not None:
            logger.info("Resolved lineage directory %s via %s", lineage_dir, strategy.__name__)
            break

    if lineage_dir is None:
        raise OutputResolutionError(
            f"Certificate directory not found for {lineage_name} under {live_root}"
        )

    paths = CertificatePaths.from_lineage_dir(lineage_dir)
    for name, file_path in paths.files().items():
        if not file_path.is_file():
            raise OutputResolutionError(f"Certificate file not found: {file_path} ({name})")
    return paths
