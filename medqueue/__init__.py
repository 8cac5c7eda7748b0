"""
MedQueue

A FastAPI service for booking clinical appointments. Doctors are gated by an
admin verification workflow, and each booking receives a first-come-first-served
token number per doctor per day.
"""

__version__ = "1.0.0"
