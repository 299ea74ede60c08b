"""Indonesian payroll engine: PPh 21, BPJS, period lifecycle and salary ledger."""

__version__ = "0.1.0"
