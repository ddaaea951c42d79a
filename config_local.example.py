# config_local.example.py

"""
Example local overrides.

Usage:
  1) Copy this file to `config_local.py`
  2) Adjust values for your machine
  3) Never commit `config_local.py`

Names are upper-case Settings field names. Prefer `.env` / BACKUP_* env vars;
use this file only for safe overrides.
"""

# Example: keep everything under a scratch directory
# from pathlib import Path
# DATA_DIR = Path(".local/backup-keeper")
# STORAGE_ROOT = DATA_DIR / "remote"

# Example: only back up grafana locally
# MONITORING_TOOLS = ["grafana"]

# Example: smaller Loki pages while debugging pagination
# LOKI_PAGE_SIZE = 50
# LOG_DEDUPE = True
