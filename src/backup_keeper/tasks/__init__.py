"""
Task subsystem.

Components:
- task_models.py: data structures (TaskMetadata, SchedulePeriod) + JSON wire format
- task_store.py: ScheduleStore, the schedule document kept in a RemoteStore
- task_registry.py: task name -> runnable task
- task_scheduler.py: one scheduling pass (due check, health gate, dispatch)
- health.py: HTTP health probe used as the gate
"""
