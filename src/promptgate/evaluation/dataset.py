"""Reference (golden) dataset construction."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

import yaml

from promptgate.store import GoldenSample, PipelineRepository, SourceRecord

logger = logging.getLogger(__name__)


class DatasetSourceError(Exception):
    """Raised when a source record file cannot be read."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        super().__init__(f"Cannot load source records from {path}: {reason}")


def load_source_records(path: Path) -> list[SourceRecord]:
    """Read source records from a JSON or YAML file holding a list of objects."""
    try:
        with path.open() as f:
            if path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except FileNotFoundError as err:
        raise DatasetSourceError(path, "file not found") from err
    except (json.JSONDecodeError, yaml.YAMLError) as err:
        raise DatasetSourceError(path, str(err)) from err

    if isinstance(data, dict):
        data = data.get("records", data.get("jobs"))
    if not isinstance(data, list):
        raise DatasetSourceError(path, "expected a list of records")

    records: list[SourceRecord] = []
    for index, item in enumerate(data):
        if not isinstance(item, dict) or "id" not in item:
            logger.warning("Skipping source record #%d without an id", index)
            continue
        records.append(SourceRecord.from_dict(item))
    return records


class ReferenceDatasetManager:
    """Builds and loads the golden sample set used for playback."""

    def __init__(self, repo: PipelineRepository) -> None:
        self.repo = repo

    def build(
        self, source_records: Iterable[SourceRecord], sample_size: int
    ) -> list[GoldenSample]:
        """Replace the golden set with up to `sample_size` verified records.

        Records without complete ratings are skipped.
        """
        if sample_size < 0:
            raise ValueError("sample_size must be non-negative")

        created_at = datetime.now(UTC).isoformat()
        samples: list[GoldenSample] = []
        skipped = 0
        seen: set[str] = set()
        for record in source_records:
            if len(samples) >= sample_size:
                break
            if record.ratings is None:
                skipped += 1
                continue
            sample_id = f"golden-{record.id}"
            if sample_id in seen:
                logger.warning("Duplicate source record %s ignored", record.id)
                continue
            seen.add(sample_id)
            samples.append(
                GoldenSample(
                    id=sample_id,
                    input=record.input,
                    expected=record.ratings,
                    created_at=created_at,
                )
            )

        self.repo.replace_golden_samples(samples)
        logger.info(
            "Built golden dataset with %d samples (%d records without ratings skipped)",
            len(samples),
            skipped,
        )
        return samples

    def load(self, limit: int | None = None) -> list[GoldenSample]:
        """Return the current golden set in build order."""
        return self.repo.get_golden_samples(limit)
