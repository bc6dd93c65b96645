"""
Service layer: data fetching and aggregation collaborators, the two-phase
data orchestrator and the controller that ties state changes to refreshes.
"""
