"""Persistence for periods, employees, salary components and bulk operations."""
