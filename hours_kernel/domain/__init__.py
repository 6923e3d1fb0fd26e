"""Pure domain layer of the kernel: clock, hour values and input DTOs."""
