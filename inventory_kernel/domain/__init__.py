"""Pure domain types for the inventory kernel: value objects, DTOs, clock."""
