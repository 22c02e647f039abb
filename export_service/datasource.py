"""Paged data sources backing the registered export types."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import structlog

from .errors import DataSourceError, ExportError
from .models import ExportDataQuery

logger = structlog.get_logger("export_datasource")

DEFAULT_PAGE_SIZE = 50


class PagedDataSource:
    """Stateful cursor over the records of one export type for one query.

    Instances are created per request by the type's factory and must not be
    shared: ``fetch_page`` mutates the paging state.
    """

    def __init__(self, query: ExportDataQuery, page_size: Optional[int] = None) -> None:
        self.query = query
        self.page_size = query.take or page_size or DEFAULT_PAGE_SIZE
        self.offset = query.skip
        self.items: List[Any] = []
        self.has_more = True
        self._total: Optional[int] = None

    def _fetch(self, skip: int, take: int) -> List[Any]:
        raise NotImplementedError

    def _count(self) -> int:
        raise NotImplementedError

    def fetch_page(self) -> List[Any]:
        """Fetch the next page and advance the cursor."""
        if not self.has_more:
            self.items = []
            return self.items

        try:
            page = list(self._fetch(self.offset, self.page_size))
        except ExportError:
            raise
        except Exception as exc:
            logger.error("data_source_fetch_failed", offset=self.offset, error=str(exc))
            raise DataSourceError(str(exc)) from exc

        self.items = page
        self.offset += len(page)
        if len(page) < self.page_size:
            self.has_more = False
            if page:
                # The cursor ran off the end, so the count is now exact.
                self._total = self.offset
        return page

    def total_count(self) -> int:
        """Return the best-known total number of records for the query."""
        if self._total is not None:
            return self._total
        try:
            self._total = int(self._count())
        except ExportError:
            raise
        except Exception as exc:
            logger.error("data_source_count_failed", error=str(exc))
            raise DataSourceError(str(exc)) from exc
        return self._total

    def iter_pages(self, checkpoint: Optional[Callable[[], None]] = None) -> Iterator[List[Any]]:
        """Drain the remaining pages in order, stopping at the first empty one.

        ``checkpoint`` runs before every fetch; raising from it stops the drain.
        """
        while self.has_more:
            if checkpoint is not None:
                checkpoint()
            page = self.fetch_page()
            if not page:
                break
            yield page


class InMemoryDataSource(PagedDataSource):
    """Data source over an in-memory sequence of records (dicts or models)."""

    def __init__(
        self,
        records: Sequence[Any],
        query: ExportDataQuery,
        page_size: Optional[int] = None,
        id_field: str = "id",
    ) -> None:
        super().__init__(query, page_size)
        self.id_field = id_field
        self._records = self._apply_query(list(records))

    @staticmethod
    def _as_dict(record: Any) -> Dict[str, Any]:
        if isinstance(record, dict):
            return record
        if hasattr(record, "model_dump"):
            return record.model_dump()
        return vars(record)

    def _apply_query(self, records: List[Any]) -> List[Any]:
        query = self.query

        if query.object_ids:
            wanted = set(query.object_ids)
            records = [
                record for record in records if str(self._as_dict(record).get(self.id_field)) in wanted
            ]

        if query.keyword:
            keyword = query.keyword.lower()
            records = [
                record
                for record in records
                if any(
                    keyword in value.lower()
                    for value in self._as_dict(record).values()
                    if isinstance(value, str)
                )
            ]

        if query.sort:
            field = query.sort.lstrip("-")
            records = sorted(
                records,
                key=lambda record: (self._as_dict(record).get(field) is None, self._as_dict(record).get(field)),
                reverse=query.sort.startswith("-"),
            )

        return records

    def _fetch(self, skip: int, take: int) -> List[Any]:
        return self._records[skip : skip + take]

    def _count(self) -> int:
        return len(self._records)


__all__ = ["DEFAULT_PAGE_SIZE", "PagedDataSource", "InMemoryDataSource"]
