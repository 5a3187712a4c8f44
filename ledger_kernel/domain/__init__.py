"""Pure domain layer: DTOs, clock, validation, and lifecycle rules."""
