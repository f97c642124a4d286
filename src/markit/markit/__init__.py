"""MarkIt attendance tracker package.

Organized by feature modules (users, subjects, lectures, stats, dashboard,
realtime) with a thin Flask controller layer over service/repository layers.
"""
