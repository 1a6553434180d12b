"""HTTP preview service for the payroll engine."""
