#civicbot/services/storage.py
import time, uuid
from pathlib import Path
from civicbot.core.config import settings

def uploads_root() -> Path:
    return Path(settings.uploads_dir)

def make_object_key(issue_id: int, kind: str, filename: str | None = None, default_ext: str = "bin") -> str:
    """issue_<id>_<kind>_<nanos>.<ext>; the extension comes from the original name when there is one."""
    ext = default_ext
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower() or default_ext
    return f"issue_{issue_id}_{kind}_{time.time_ns()}.{ext}"

def save_telegram_file(transport, file_id: str, key: str) -> str:
    """Downloads a transport file into the uploads dir; returns the stored relative path."""
    dest = uploads_root() / key
    transport.download_file(file_id, dest)
    return str(Path(settings.uploads_dir) / key)

def save_upload(issue_id: int, filename: str, data: bytes) -> tuple[str, str]:
    """Stores a web upload; returns (stored name, relative path)."""
    safe = Path(filename or "upload.bin").name
    name = f"issue_{issue_id}_{uuid.uuid4().hex[:12]}_{safe}"
    root = uploads_root()
    root.mkdir(parents=True, exist_ok=True)
    (root / name).write_bytes(data)
    return name, str(Path(settings.uploads_dir) / name)
