from __future__ import annotations

__all__ = ["IDs"]


class IDs:
    class Control:
        URL = "url"

        # Selectors mirrored into the query string
        VIEW_SELECT = "view-select"
        CHART_TYPE_SELECT = "chart-type-select"
        TYPE_SELECT = "type-select"
        COUNTRY_SELECT = "country-select"
        STYLE_SELECT = "style-select"
        OPTIONS_CHECKLIST = "options-checklist"

        # Graph
        MAIN_GRAPH = "main-graph"
        MAIN_GRAPH_LOADING = "main-graph-loading"

        # Status bar
        STATUS_BAR = "status-bar"
        QUERY_TEXT = "query-text"
