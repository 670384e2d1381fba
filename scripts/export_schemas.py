"""Export the generated v1 OpenAPI document."""

import json
from pathlib import Path

from backend.app.api.routes.docs import build_openapi, mounted_services
from backend.app.main import create_app


def main() -> None:
    """Export the document to docs/api/product-v1.json."""
    out_dir = Path("docs/api")
    out_dir.mkdir(parents=True, exist_ok=True)

    document = build_openapi(mounted_services(create_app()))
    out_path = out_dir / "product-v1.json"
    with open(out_path, "w") as f:
        json.dump(document, f, indent=2)
    print(f"Exported v1 API document to {out_path}")


if __name__ == "__main__":
    main()
