"""Pure domain value types for the payroll kernel (zero I/O)."""
