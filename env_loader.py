from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Iterable, Optional


def parse_env_lines(lines: Iterable[str]) -> Dict[str, str]:
    """Разобрать строки формата KEY=VALUE (как в .env)."""
    out: Dict[str, str] = {}
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.lower().startswith("export "):
            line = line[7:].strip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue
        out[key] = value.strip().strip('"').strip("'")
    return out


def load_dotenv_like(*candidates: str) -> Optional[str]:
    """Minimal .env loader.

    Ищет файл в порядке: явные пути, ``$METAGATE_ENV_FILE``, ``.env`` в
    текущем каталоге и в корне проекта. Уже заданные переменные окружения
    не перезаписываются. Возвращает путь загруженного файла или None.
    """
    paths = [Path(c) for c in candidates if c]
    explicit = (os.environ.get("METAGATE_ENV_FILE") or "").strip()
    if explicit:
        paths.append(Path(explicit))
    proj_root = Path(__file__).resolve().parent
    paths.extend([Path.cwd() / ".env", proj_root / ".env"])

    for p in paths:
        if not p.is_file():
            continue
        for key, value in parse_env_lines(p.read_text(encoding="utf-8").splitlines()).items():
            os.environ.setdefault(key, value)
        return str(p)
    return None
