from __future__ import annotations

import time
import zipfile
from pathlib import Path


def create_debug_bundle(
    *,
    run_dir: str,
    out_dir: str = "logs",
) -> Path:
    """
    Zip one run directory (log.txt, screenshots, saved HTML) for sharing.

    Never includes `.env` or config files, which hold credentials.
    """
    out_root = Path(out_dir)
    out_root.mkdir(parents=True, exist_ok=True)

    run = Path(run_dir)
    stamp = time.strftime("%Y%m%d_%H%M%S")
    run_part = f"_{run.name}" if run.name else ""
    out_path = out_root / f"debug_bundle{run_part}_{stamp}.zip"

    def _add_file(z: zipfile.ZipFile, file_path: Path, arcname: str) -> None:
        try:
            if file_path.exists() and file_path.is_file():
                z.write(file_path, arcname=arcname)
        except OSError:
            # a file vanished mid-bundle; keep going
            return

    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as z:
        if run.exists() and run.is_dir():
            for p in sorted(run.rglob("*")):
                if not p.is_file() or p == out_path:
                    continue
                _add_file(z, p, arcname=str(Path("run") / p.relative_to(run)))

    return out_path
