"""Local disk adapter for company CSVs, the signal log and the weight store.

Usage example:
    from pathlib import Path

    from mandate_matching.infrastructure.filesystem import LocalFileSystem

    fs = LocalFileSystem()
    fs.write_json({"schema_version": 1, "mandates": {}}, Path("data/state/scoring_weights.json"))
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import override

import pandas as pd

from ..protocols import FileSystem


class LocalFileSystem(FileSystem):
    """Reads and writes engine data under the working directory."""

    @override
    def read_csv(self, path: Path) -> pd.DataFrame:
        return pd.read_csv(path, dtype=str, keep_default_na=False)

    @override
    def append_csv(self, df: pd.DataFrame, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        write_header = not path.exists()
        df.to_csv(path, mode="a", header=write_header, index=False)

    @override
    def read_json(self, path: Path) -> object:
        return json.loads(path.read_text(encoding="utf-8"))

    @override
    def write_json(self, data: object, path: Path) -> None:
        # Write to a sibling temp file and rename so readers never see a partial file.
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @override
    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    @override
    def exists(self, path: Path) -> bool:
        return path.exists()
