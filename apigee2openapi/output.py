"""Serialization of produced documents to YAML and JSON."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

import yaml

logger = logging.getLogger(__name__)

FORMATS = ('yaml', 'json')


class _NoAliasDumper(yaml.SafeDumper):
    """Emit repeated objects in full instead of as &id anchors"""

    def ignore_aliases(self, data):
        return True


def dump_yaml(document: Dict[str, Any]) -> str:
    return yaml.dump(document, Dumper=_NoAliasDumper, sort_keys=False,
                     allow_unicode=True, default_flow_style=False)


def dump_json(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False)


def save_document(document: Dict[str, Any], output_dir: Union[str, Path],
                  name: str = "openapi", formats: Iterable[str] = FORMATS) -> List[Path]:
    """
    Save an OpenAPI document to disk

    Args:
        document: OpenAPI document
        output_dir: Directory to write into; created if missing
        name: File name without extension
        formats: Any of 'yaml' and 'json'

    Returns:
        Paths of the written files
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for fmt in formats:
        if fmt == 'yaml':
            path = output_dir / f"{name}.yaml"
            text = dump_yaml(document)
        elif fmt == 'json':
            path = output_dir / f"{name}.json"
            text = dump_json(document)
        else:
            raise ValueError(f"Unsupported output format: {fmt}")
        path.write_text(text, encoding='utf-8')
        logger.info(f"Wrote {path}")
        written.append(path)
    return written
