"""
Dilux Database Inventory - Shared Package

This package contains the code used by all Function Apps:
- API (HTTP triggers)
- Scheduler (Timer triggers)

Modules:
- config: Configuration management and Azure clients
- models: Data models for databases, backup history, requests and reports
- services: Filter selection, backup staleness, SQL Server access, report storage
- utils: Validators, tool paths
- exceptions: Custom exceptions
"""

__version__ = "0.1.0"
__author__ = "Dilux Solutions"
