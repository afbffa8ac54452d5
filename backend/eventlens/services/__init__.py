# Services package init
"""
EventLens Backend — Services Layer
===================================

What:  Business logic between the routes (HTTP) and the record store (SQL).

Service Inventory:
    Scan flow
    - RecordStore / SqlRecordStore: "stall by marker id", "event by id",
      activity inserts; timeout, retry and circuit breaker
    - RecordStoreClient: concurrent stall ‖ event lookup for one scan
    - EventCache: per-session single-slot event memo
    - CooldownTracker: per-session repeat-detection gate
    - validate_scan: ordered checks → ScanOutcome
    - ResultReporter: outcome → ScanReport, plus scan analytics
    - AnalyticsSink: fire-and-forget queue in front of the activity table
    - ScanSession / ScanSessionManager: one AR session each

    Catalog
    - CatalogService: events and stalls CRUD, search, engagement counters
    - ActivityService: user activity history and favourites
"""
