"""
Compile `grpc_app/protos` into `grpc_app/generated` with grpcio-tools.

    python -m grpc_app.codegen

protoc writes absolute imports rooted at the proto include path
(`from items.v1 import ...`); they are rewritten to live under
`grpc_app.generated` so the stubs import as a regular package.
"""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import List, Optional

import grpc_tools
from grpc_tools import protoc

from core.logging_config import get_logger


logger = get_logger(__name__)

PACKAGE_ROOT = Path(__file__).resolve().parent
PROTO_DIR = PACKAGE_ROOT / "protos"
GENERATED_DIR = PACKAGE_ROOT / "generated"
GENERATED_PACKAGE = "grpc_app.generated"

_WELL_KNOWN_INCLUDE = Path(os.path.dirname(grpc_tools.__file__)) / "_proto"


def proto_files(proto_dir: Path = PROTO_DIR) -> List[Path]:
    return sorted(proto_dir.rglob("*.proto"))


def _outputs_for(proto: Path, proto_dir: Path, out_dir: Path) -> List[Path]:
    stem = proto.relative_to(proto_dir).with_suffix("")
    return [
        out_dir / stem.parent / f"{stem.name}_pb2.py",
        out_dir / stem.parent / f"{stem.name}_pb2_grpc.py",
    ]


def _fix_imports(path: Path, proto_dir: Path, package: str) -> None:
    roots = sorted({p.relative_to(proto_dir).parts[0] for p in proto_files(proto_dir)})
    pattern = re.compile(rf"^from ({'|'.join(map(re.escape, roots))})((?:\.\w+)*) import ", re.M)
    source = path.read_text(encoding="utf-8")
    fixed = pattern.sub(lambda m: f"from {package}.{m.group(1)}{m.group(2)} import ", source)
    if fixed != source:
        path.write_text(fixed, encoding="utf-8")


def _touch_packages(out_dir: Path, outputs: List[Path]) -> None:
    for output in outputs:
        folder = output.parent
        while True:
            (folder / "__init__.py").touch(exist_ok=True)
            if folder == out_dir:
                break
            folder = folder.parent


def generate(
    proto_dir: Path = PROTO_DIR,
    out_dir: Path = GENERATED_DIR,
    package: str = GENERATED_PACKAGE,
) -> List[Path]:
    """Run protoc over every `.proto` under `proto_dir`; returns the files written."""
    protos = proto_files(proto_dir)
    if not protos:
        raise RuntimeError(f"No .proto files under {proto_dir}")
    out_dir.mkdir(parents=True, exist_ok=True)

    args = [
        "grpc_tools.protoc",
        f"-I{proto_dir}",
        f"-I{_WELL_KNOWN_INCLUDE}",
        f"--python_out={out_dir}",
        f"--grpc_python_out={out_dir}",
        *(str(p) for p in protos),
    ]
    code = protoc.main(args)
    if code != 0:
        raise RuntimeError(f"protoc failed with exit code {code}")

    written: List[Path] = []
    for proto in protos:
        for output in _outputs_for(proto, proto_dir, out_dir):
            _fix_imports(output, proto_dir, package)
            written.append(output)
    _touch_packages(out_dir, written)
    logger.info("grpc_stubs_generated", protos=[str(p) for p in protos], out_dir=str(out_dir))
    return written


def is_stale(proto_dir: Path = PROTO_DIR, out_dir: Path = GENERATED_DIR) -> bool:
    """True when any stub is missing or older than its `.proto`."""
    for proto in proto_files(proto_dir):
        source_mtime = proto.stat().st_mtime
        for output in _outputs_for(proto, proto_dir, out_dir):
            if not output.exists() or output.stat().st_mtime < source_mtime:
                return True
    return False


def ensure_generated(proto_dir: Path = PROTO_DIR, out_dir: Path = GENERATED_DIR) -> Optional[List[Path]]:
    if is_stale(proto_dir, out_dir):
        return generate(proto_dir, out_dir)
    return None


if __name__ == "__main__":
    generate()
