"""Core domain layer: enums, value types, scoring engines, ORM models and services."""
