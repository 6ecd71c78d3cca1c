"""Loading of YAML/JSON manifest files."""

import json
import logging
from typing import Any, Dict, Iterable, List

import yaml

logger = logging.getLogger(__name__)


def load_documents(filename: str) -> List[Dict[str, Any]]:
    """
    Load all documents from a YAML (multi-document) or JSON file.

    Empty YAML documents are skipped. A JSON file may hold a single object
    or a list of objects.
    """
    with open(filename, "r") as f:
        if filename.endswith(".json"):
            data = json.load(f)
            docs = data if isinstance(data, list) else [data]
        else:
            docs = [d for d in yaml.safe_load_all(f) if d is not None]

    logger.debug(f"Loaded {len(docs)} document(s) from {filename}")
    return docs


def load_all(filenames: Iterable[str]) -> List[Dict[str, Any]]:
    docs: List[Dict[str, Any]] = []
    for filename in filenames:
        docs.extend(load_documents(filename))
    return docs
