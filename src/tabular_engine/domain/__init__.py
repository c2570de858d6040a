"""Domain layer: values, tables, expressions, plans and their services."""
