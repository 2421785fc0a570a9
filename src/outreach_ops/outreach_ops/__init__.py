"""OutreachOps staffing backend.

This package is organized by feature modules (users, shifts, timeclock, payroll, ...)
with a thin Flask controller layer over service/repository layers.
"""
