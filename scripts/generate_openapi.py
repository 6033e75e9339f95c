"""Export the VAT report API's OpenAPI document."""

from __future__ import annotations

import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from vatreport.main import create_application


def main(destination: Path = Path("docs/openapi.json")) -> None:
    spec = create_application().openapi()
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(json.dumps(spec, indent=2), encoding="utf-8")
    print(f"OpenAPI specification written to {destination}")


if __name__ == "__main__":
    main(Path(sys.argv[1]) if len(sys.argv) > 1 else Path("docs/openapi.json"))
