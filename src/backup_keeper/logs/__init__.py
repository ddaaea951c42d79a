"""
Log aggregation.

- loki.py: LogSource over Loki's query_range API
- aggregator.py: pagination, multi-line folding, dated output file, retention
"""
