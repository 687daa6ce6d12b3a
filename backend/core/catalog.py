"""
Field catalog: static, read-only registry of datasets and their fields.

Field ids are only unique inside one dataset, so every lookup is addressed
through a dataset.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from core.datasets import QA_DATASETS
from core.errors import NotFound
from core.models import Dataset, Dimension, FilterField, Metric
from core.settings import catalog_path

logger = logging.getLogger("uvicorn.error")


class FieldCatalog:
    """Ordered registry of datasets, built once at startup."""

    def __init__(self, datasets: Iterable[Dataset]) -> None:
        self._datasets: Dict[str, Dataset] = {}
        for ds in datasets:
            if ds.id in self._datasets:
                raise ValueError(f"Duplicate dataset id '{ds.id}' in catalog.")
            self._datasets[ds.id] = ds

    @classmethod
    def from_dicts(cls, items: Iterable[Dict[str, Any]]) -> "FieldCatalog":
        return cls(Dataset.model_validate(item) for item in items)

    def list_datasets(self) -> List[Dataset]:
        return list(self._datasets.values())

    def get_dataset(self, dataset_id: str) -> Dataset:
        ds = self._datasets.get(dataset_id)
        if ds is None:
            raise NotFound(f"Dataset '{dataset_id}' not found.")
        return ds

    def find_metric(self, dataset: Dataset, metric_id: str) -> Metric:
        for m in dataset.metrics:
            if m.id == metric_id:
                return m
        raise NotFound(f"Metric '{metric_id}' not found in dataset '{dataset.id}'.")

    def find_dimension(self, dataset: Dataset, dimension_id: str) -> Dimension:
        for d in dataset.dimensions:
            if d.id == dimension_id:
                return d
        raise NotFound(f"Dimension '{dimension_id}' not found in dataset '{dataset.id}'.")

    def find_filter(self, dataset: Dataset, filter_id: str) -> FilterField:
        for f in dataset.filters:
            if f.id == filter_id:
                return f
        raise NotFound(f"Filter '{filter_id}' not found in dataset '{dataset.id}'.")

    def datasets_containing(self, field_id: str) -> List[str]:
        """Ids of datasets exposing a metric, dimension or filter with this id."""
        found: List[str] = []
        for ds in self._datasets.values():
            ids = {m.id for m in ds.metrics} | {d.id for d in ds.dimensions} | {f.id for f in ds.filters}
            if field_id in ids:
                found.append(ds.id)
        return found

    def __contains__(self, dataset_id: object) -> bool:
        return dataset_id in self._datasets

    def __len__(self) -> int:
        return len(self._datasets)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_catalog(path: Optional[str] = None) -> FieldCatalog:
    """Load the catalog from a JSON list of datasets, or the built-in QA registry."""
    path = path or catalog_path()
    if not path:
        return FieldCatalog.from_dicts(QA_DATASETS)

    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("datasets", [])
    catalog = FieldCatalog.from_dicts(raw)
    logger.info("Loaded %d datasets from %s", len(catalog), path)
    return catalog


_catalog: Optional[FieldCatalog] = None


def get_catalog() -> FieldCatalog:
    """Process-wide catalog, loaded lazily on first use."""
    global _catalog
    if _catalog is None:
        _catalog = load_catalog()
    return _catalog


def set_catalog(catalog: Optional[FieldCatalog]) -> None:
    """Replace (or clear, with None) the process-wide catalog."""
    global _catalog
    _catalog = catalog
