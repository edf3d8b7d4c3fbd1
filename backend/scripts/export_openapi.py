from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.main import app


def main() -> None:
    parser = argparse.ArgumentParser(description="Export the API's OpenAPI document.")
    parser.add_argument("--output", type=Path, default=ROOT / "openapi.generated.json")
    args = parser.parse_args()

    spec = app.openapi()
    args.output.write_text(json.dumps(spec, indent=2))
    print(f"OpenAPI spec exported to {args.output}")


if __name__ == "__main__":
    main()
