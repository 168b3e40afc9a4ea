"""
Design project feature package.

Site tracking for interior design projects: progress notes, the
analytics dashboard (locations, trade durations, stage funnel, designer
workload), CSV export and AI-written client reports.
"""
