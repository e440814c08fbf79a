"""
Write the OpenAPI schema of the Todo API to a JSON file.

API clients (the browser app included) and documentation tools can consume
the schema without running the server or reaching the database.

Usage:
    todo-api-openapi [output_path]
    python -m todo_api.generate_openapi [output_path]

The default output path is interfaces/openapi.json under the current
working directory.
"""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional, Sequence

from .main import create_app
from .settings import Settings

DEFAULT_OUTPUT = Path("interfaces") / "openapi.json"


# PUBLIC_INTERFACE
def generate_openapi(output: Optional[Path] = None) -> Path:
    """Write the OpenAPI schema to ``output`` and return the written path."""
    # The schema does not depend on the storage backend.
    app = create_app(Settings(persistence_backend="memory"))
    schema = app.openapi()

    out_path = Path(output) if output is not None else DEFAULT_OUTPUT
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2, ensure_ascii=False)
    return out_path


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = list(sys.argv[1:] if argv is None else argv)
    out_path = generate_openapi(Path(args[0]) if args else None)
    print(f"Wrote OpenAPI schema to: {out_path}")


if __name__ == "__main__":
    main()
