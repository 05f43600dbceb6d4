"""Terminal reporting — rich renderables for every component report.

Modules
-------
renderer
    ``ReportRenderer`` turns verification, policy, key, drift, lock and
    ledger results into Rich tables and panels.  It only displays what the
    components computed; it never decides outcomes or exit codes.
"""
