from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from mortality_explorer.core.date_range import RangeCalculator
from mortality_explorer.core.period import parse_position
from mortality_explorer.state.resolver import SOURCE_SYSTEM, ResolvedState, StateChange
from mortality_explorer.state.store import StateStore
from mortality_explorer.state.validation import DEFAULT_MAX_COUNTRIES, IssueReporter, auto_fix, validate_state

from .access import FeatureAccess
from .data_orchestrator import DataOrchestrator, FetchRequest, FetchResult

logger = logging.getLogger(__name__)

DOWNLOAD = "download"
UPDATE = "update"
FILTER = "filter"
NONE = "none"

_RANK = {NONE: 0, FILTER: 1, UPDATE: 2, DOWNLOAD: 3}

# The single place that decides what an edit of each field costs
FIELD_UPDATE_STRATEGY: Dict[str, str] = {
    "countries": DOWNLOAD,
    "type": DOWNLOAD,
    "chart_type": DOWNLOAD,
    "age_groups": DOWNLOAD,
    "standard_population": UPDATE,
    "show_baseline": UPDATE,
    "baseline_method": UPDATE,
    "baseline_date_from": UPDATE,
    "baseline_date_to": UPDATE,
    "slider_start": UPDATE,
    "cumulative": UPDATE,
    "date_from": FILTER,
    "date_to": FILTER,
    "chart_style": FILTER,
    "view": FILTER,
    "is_excess": FILTER,
    "is_zscore": FILTER,
    "show_prediction_interval": FILTER,
    "show_percentage": FILTER,
    "show_total": FILTER,
    "show_logarithmic": FILTER,
    "maximize": FILTER,
    "show_labels": NONE,
    "decimals": NONE,
}

NO_DATA_MESSAGE = "No data available for the selected countries."
NO_ASMR_DATA_MESSAGE = (
    "Age-standardized data is not available for the selected countries. "
    "Try crude mortality rate or deaths instead."
)

Renderer = Callable[[Optional[FetchResult], Mapping[str, Any], Optional[str]], Any]


def update_type_for(field: str, values: Mapping[str, Any]) -> str:
    strategy = FIELD_UPDATE_STRATEGY.get(field, NONE)
    if field == "cumulative" and values.get("baseline_method") == "auto":
        # Auto baselines are cumulated client-side
        return FILTER
    return strategy


def strongest_update(fields: Iterable[str], values: Mapping[str, Any]) -> str:
    kind = NONE
    for field in fields:
        candidate = update_type_for(field, values)
        if _RANK[candidate] > _RANK[kind]:
            kind = candidate
    return kind


class ExplorerController:
    """
    Ties the state store to data refreshes and rendering.

    - edits go through the resolver and are committed atomically
    - the strongest update type among the changed fields decides between
      refetching, re-aggregating, re-rendering or nothing
    - results whose request no longer matches the store are discarded, and a
      refresh requested while one is in flight runs again afterwards
    - user-set dates that no longer exist in the new labels are snapped
    """

    def __init__(
            self,
            orchestrator: DataOrchestrator,
            store: Optional[StateStore] = None,
            access: Optional[FeatureAccess] = None,
            renderer: Optional[Renderer] = None,
            progressive: bool = False,
            max_countries: int = DEFAULT_MAX_COUNTRIES,
            reporter: Optional[IssueReporter] = None,
    ):
        self.orchestrator = orchestrator
        self.store = store or StateStore()
        self.access = access or FeatureAccess()
        self.renderer = renderer
        self.progressive = progressive
        self.max_countries = max_countries
        self.reporter = reporter or IssueReporter()

        self.labels: tuple[str, ...] = ()
        self.result: Optional[FetchResult] = None
        self.message: Optional[str] = None
        self.figure: Any = None
        self._pending = False

    # ------------------------------------------------------------------
    # State entry points
    # ------------------------------------------------------------------
    @property
    def values(self) -> Mapping[str, Any]:
        return self.store.state.values

    def load(self, query: Any) -> ResolvedState:
        resolved = self._repair(self.store.resolver.resolve_initial(query))
        self.store.apply_resolved_state(resolved)
        return resolved

    async def change(self, field: str, value: Any) -> str:
        return await self.apply_changes([StateChange(field, value)])

    async def switch_view(self, view: str) -> str:
        return await self.apply_changes([StateChange("view", view)])

    async def apply_changes(self, changes: List[StateChange]) -> str:
        resolved = self.store.resolver.resolve_changes(changes, self.store.state)
        changed = self.store.apply_resolved_state(self._repair(resolved))
        return await self.on_relevant_fields_changed(changed)

    async def on_relevant_fields_changed(self, fields: Iterable[str]) -> str:
        kind = strongest_update(fields, self.values)
        if kind in (DOWNLOAD, UPDATE):
            await self.refresh()
        elif kind == FILTER:
            self._render()
        return kind

    def query_string(self) -> str:
        return self.store.query_string()

    def range_calculator(self) -> RangeCalculator:
        values = self.values
        return RangeCalculator(
            values["chart_type"],
            self.labels,
            slider_start=values.get("slider_start"),
            date_from=values.get("date_from"),
            date_to=values.get("date_to"),
            has_extended_access=self.access.has_extended_access,
        )

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------
    async def refresh(self) -> Optional[FetchResult]:
        if self.orchestrator.is_updating:
            self._pending = True
            logger.debug("Refresh requested while updating; queued")
            return None

        while True:
            self._pending = False
            request = FetchRequest.from_values(self.values)

            if self.progressive:
                outcome = await self.orchestrator.update_progressive(request)
                if outcome is None:
                    if self._rerun_needed(request):
                        continue
                    self._commit(None)
                    return None
                first, inject_baselines = outcome
                if self._rerun_needed(request):
                    continue
                self._commit(first, write_back=False)
                result = await inject_baselines()
                if self._is_current(request):
                    self._commit(result)
                else:
                    logger.info("Discarding stale baseline injection", extra={"chart_type": request.chart_type})
                return self.result

            result = await self.orchestrator.update(request)
            if self._rerun_needed(request):
                continue
            self._commit(result)
            return result

    def _is_current(self, request: FetchRequest) -> bool:
        return FetchRequest.from_values(self.values) == request

    def _rerun_needed(self, request: FetchRequest) -> bool:
        if not self._is_current(request):
            logger.info("Discarding stale fetch result", extra={"chart_type": request.chart_type})
            return True
        return self._pending

    def _commit(self, result: Optional[FetchResult], write_back: bool = True) -> None:
        self.result = result
        if result is None:
            self.labels = ()
            request = FetchRequest.from_values(self.values)
            self.message = NO_ASMR_DATA_MESSAGE if request.is_asmr else NO_DATA_MESSAGE
            self._render()
            return

        self.labels = result.labels
        self.message = None
        if write_back:
            # Held back until the baseline pass lands so the request stays current
            self._write_back_baselines(result)
        self._correct_dates()
        self._render()

    # ------------------------------------------------------------------
    # Repairs
    # ------------------------------------------------------------------
    def _repair(self, resolved: ResolvedState) -> ResolvedState:
        issues = validate_state(resolved.values, max_countries=self.max_countries)
        self.reporter.report(issues)
        if not issues:
            return resolved

        updates = auto_fix(issues, resolved.values, max_countries=self.max_countries)
        if not updates:
            return resolved
        return self.store.resolver.resolve_changes(
            [StateChange(name, value, SOURCE_SYSTEM, "auto-fix") for name, value in updates.items()],
            resolved,
        )

    def _apply_system(self, updates: Dict[str, Any], reason: str) -> None:
        if not updates:
            return
        resolved = self.store.resolver.resolve_changes(
            [StateChange(name, value, SOURCE_SYSTEM, reason) for name, value in updates.items()],
            self.store.state,
        )
        self.store.apply_resolved_state(resolved)

    def _write_back_baselines(self, result: FetchResult) -> None:
        # Only dates the user chose are rewritten; defaults stay implicit
        updates: Dict[str, Any] = {}
        for name, validated in (
                ("baseline_date_from", result.baseline_from),
                ("baseline_date_to", result.baseline_to),
        ):
            if self.store.is_user_set(name) and validated and self.store.get(name) != validated:
                updates[name] = validated
        self._apply_system(updates, "baseline validated")

    def _correct_dates(self) -> None:
        calc = self.range_calculator()
        if not calc.visible_labels:
            return
        if not (self.store.is_user_set("date_from") or self.store.is_user_set("date_to")):
            return

        date_from, date_to = self.values.get("date_from"), self.values.get("date_to")
        from_ok = date_from is None or calc.is_valid_date(date_from)
        to_ok = date_to is None or calc.is_valid_date(date_to)
        if from_ok and to_ok:
            return

        default = calc.get_default_range()
        new_from = date_from if from_ok else (calc.match_date_to_label(date_from, False) or default.from_)
        new_to = date_to if to_ok else (calc.match_date_to_label(date_to, True) or default.to)

        start, end = parse_position(new_from), parse_position(new_to)
        if start is not None and end is not None and start > end:
            new_from, new_to = default.from_, default.to

        updates = {}
        if new_from != date_from:
            updates["date_from"] = new_from
        if new_to != date_to:
            updates["date_to"] = new_to
        logger.info("Correcting dates to available labels", extra={"updates": updates})
        self._apply_system(updates, "date snapped to labels")

    def _render(self) -> None:
        if self.renderer is not None:
            self.figure = self.renderer(self.result, self.values, self.message)
