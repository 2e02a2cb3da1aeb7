"""
Export the OpenAPI schema of the lab site API.

Writes ``openapi.json`` and ``openapi.yaml`` to ``docs/api/`` at the
repository root, or to the directory given as the first argument.
"""

import json
import sys
from pathlib import Path

import yaml

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

DEFAULT_OUTPUT_DIR = backend_dir.parent / "docs" / "api"


def export_openapi(output_dir: Path = DEFAULT_OUTPUT_DIR) -> dict:
    """Write the schema as JSON and YAML and return it."""
    from labsite.main import app

    openapi_schema = app.openapi()

    output_dir.mkdir(parents=True, exist_ok=True)
    json_path = output_dir / "openapi.json"
    yaml_path = output_dir / "openapi.yaml"

    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(openapi_schema, f, indent=2)
    print(f"OpenAPI JSON exported to: {json_path}")

    with open(yaml_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(openapi_schema, f, default_flow_style=False, sort_keys=False)
    print(f"OpenAPI YAML exported to: {yaml_path}")

    print("\nAPI Summary:")
    print(f"  Title: {openapi_schema['info']['title']}")
    print(f"  Version: {openapi_schema['info']['version']}")
    print(f"  Endpoints: {len(openapi_schema['paths'])}")
    print(f"  Schemas: {len(openapi_schema.get('components', {}).get('schemas', {}))}")
    return openapi_schema


if __name__ == "__main__":
    target = Path(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_OUTPUT_DIR
    export_openapi(target)
