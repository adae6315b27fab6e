"""
Services Package - The core operations

- task_store: task records, subtasks, parent re-assignment
- dependency_graph: acyclic "depends on" edges
- hierarchy: parent -> subtasks trees for display
- time_ledger: timers, manual entries, corrections, approval
- productivity: rolling statistics over the ledger
"""
