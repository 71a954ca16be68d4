"""Catalog resolution: which source tables are missing from the destination.

Tables are compared by bare table id only, since source and destination differ
in project and possibly dataset. Targets are ordered by table id descending,
which for date-suffixed names such as ``ga_sessions_20160101`` means "most
recent first". That is a naming convention, not a date comparison: names
without zero-padded date suffixes get a different, but still deterministic,
order.
"""

import re
from typing import Iterable, List, Optional, Sequence

from bigreplicate.bucket.analytics_provider import WarehouseProvider
from bigreplicate.logging_config import get_logger
from bigreplicate.objects.app_config import MATCH_ALL
from bigreplicate.objects.table_reference import TableReference

logger = get_logger(__name__)


def filter_tables(tables: Iterable[TableReference], name_pattern: str = MATCH_ALL) -> List[TableReference]:
    """Keep tables whose id fully matches ``name_pattern``."""
    pattern = re.compile(name_pattern)
    return [t for t in tables if pattern.fullmatch(t.table_id)]


def missing_tables(sources: Iterable[TableReference], destinations: Iterable[TableReference]) -> List[TableReference]:
    """Return source tables whose table id is absent from ``destinations``.

    Example:
        >>> missing_tables([src("t1"), src("t2")], [dst("t1")])
        [TableReference(project_id='src', dataset_id='ds', table_id='t2')]
    """
    present = {t.table_id for t in destinations}
    return [t for t in sources if t.table_id not in present]


def most_recent(tables: Iterable[TableReference], limit: int) -> List[TableReference]:
    """Sort by table id descending and keep the first ``limit``."""
    return sorted(tables, key=lambda t: t.table_id, reverse=True)[:limit]


def destination_table(
    table: TableReference,
    destination_project: Optional[str] = None,
    destination_dataset: Optional[str] = None,
) -> TableReference:
    """Build the destination reference for a source table.

    The table id is kept; project and dataset are overridden when given.
    """
    return table.with_overrides(project_id=destination_project, dataset_id=destination_dataset)


def resolve_targets(
    warehouse: WarehouseProvider,
    source_project: str,
    source_dataset: str,
    destination_project: str,
    destination_dataset: Optional[str] = None,
    name_pattern: str = MATCH_ALL,
    limit: int = 7,
) -> List[TableReference]:
    """List source tables missing from the destination dataset.

    Args:
        warehouse: Catalog provider
        source_project: Project holding the source dataset
        source_dataset: Dataset to copy from
        destination_project: Project to copy into
        destination_dataset: Dataset to copy into (defaults to source_dataset)
        name_pattern: Regex that must fully match a table id
        limit: Maximum number of targets returned

    Returns:
        Missing source tables, table id descending, at most ``limit`` long.
        Empty when the destination is up to date.
    """
    sources = filter_tables(warehouse.list_tables(source_project, source_dataset), name_pattern)
    destinations = filter_tables(
        warehouse.list_tables(destination_project, destination_dataset or source_dataset),
        name_pattern,
    )
    targets = most_recent(missing_tables(sources, destinations), limit)
    logger.info(
        f"{len(sources)} source tables, {len(destinations)} destination tables, " f"{len(targets)} to replicate"
    )
    return targets


def resolve_dataset_targets(
    warehouse: WarehouseProvider,
    source_project: str,
    destination_project: str,
    datasets: Sequence[str],
    name_pattern: str = MATCH_ALL,
    limit: int = 7,
) -> List[TableReference]:
    """Resolve missing tables across several datasets.

    Each requested dataset (repeats are ignored) that exists in the source
    project is compared with the same-named dataset in the destination
    project. Results from all datasets are merged, then sorted and truncated
    together.
    """
    requested = list(dict.fromkeys(datasets))
    available = set(warehouse.list_datasets(source_project))
    selected = [d for d in requested if d in available]
    for dataset in requested:
        if dataset not in available:
            logger.warning(f"Dataset {source_project}.{dataset} not found, skipping")

    missing: List[TableReference] = []
    for dataset in selected:
        sources = filter_tables(warehouse.list_tables(source_project, dataset), name_pattern)
        destinations = filter_tables(warehouse.list_tables(destination_project, dataset), name_pattern)
        missing.extend(missing_tables(sources, destinations))

    return most_recent(missing, limit)
