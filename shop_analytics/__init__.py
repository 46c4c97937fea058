"""
Shop Turnaround Analytics

Per-shop repair-turnaround analytics computed from repair-order records,
served through a tag-addressable, memory-bounded cache so dashboard
requests do not recompute aggregations every time.

To connect a repository layer:
    Convert its rows with records.records_from_frame() (or build
    RepairOrderRecord values directly) and pass the list to the query
    functions in shop_analytics.dashboard.

To serve a front end:
    Construct one cache.AnalyticsCache at process start, call
    dashboard.warm_analytics_cache() once, then dashboard.get_shop_analytics()
    / get_shop_profile() per request.

To keep results fresh:
    Call dashboard.invalidate_for_orders(cache, changed_orders, reason)
    whenever the repository reports a create/update/delete.
"""

__version__ = "0.1.0"
